"""Main entry point for the zen-lock operator.

Run with ``kopf run -m zen_lock_operator.main`` or ``python -m zen_lock_operator``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .constants import (
    API_GROUP_VERSION,
    KIND_ZENLOCK,
    LABEL_POD_NAME,
    RETRY_BACKOFF,
    RETRY_MAX_DELAY,
    RETRY_MIN_DELAY,
)
from .handlers import BaseReconciler, SecretReconciler, ZenLockReconciler
from .outcome import Failed, ReconcileOutcome, RequeueAfter
from .store import KubernetesStore, NamespacedName, load_kube_config
from .utils.errors import sanitize_exception

logger = logging.getLogger(__name__)

# Set on cleanup; aborts retry waits in reconcilers that are still running.
_cancel = threading.Event()
_reconcilers: dict[str, BaseReconciler] = {}


def build_reconcilers(config: OperatorConfig, store: Any) -> dict[str, BaseReconciler]:
    """Build the reconcilers for ZenLocks and injected Secrets."""
    decryptor = config.build_decryptor()
    if decryptor is None:
        logger.warning("No decryptor configured; ZenLocks will not be verified")

    zenlock_reconciler = ZenLockReconciler(store, decryptor=decryptor, key_source=config.key_source)
    if not zenlock_reconciler.reload_key_material():
        logger.warning("ZEN_LOCK_PRIVATE_KEY is not set; ZenLocks will report KeyNotFound until it is")

    return {
        "zenlock": zenlock_reconciler,
        "secret": SecretReconciler(store, orphan_ttl=config.orphan_ttl),
    }


def failure_delay(retry: int) -> float:
    """Backoff before the next attempt after ``retry`` failed ones."""
    return min(RETRY_MIN_DELAY * RETRY_BACKOFF ** max(retry, 0), RETRY_MAX_DELAY)


def raise_for_outcome(outcome: ReconcileOutcome, retry: int = 0) -> None:
    """Turn a reconcile outcome into kopf's retry protocol.

    ``Done`` returns normally. ``RequeueAfter`` and ``Failed`` raise
    :class:`kopf.TemporaryError` so kopf calls the handler again, after the
    requested delay or after an exponential backoff respectively.
    """
    if isinstance(outcome, RequeueAfter):
        raise kopf.TemporaryError(f"Requeue in {outcome.delay:g}s", delay=max(outcome.delay, 0.0))
    if isinstance(outcome, Failed):
        raise kopf.TemporaryError(sanitize_exception(outcome.error), delay=failure_delay(retry))


def _run(kind: str, name: str, namespace: str, retry: int) -> None:
    reconciler = _reconcilers.get(kind)
    if reconciler is None:
        return
    raise_for_outcome(reconciler.reconcile(NamespacedName(namespace, name), _cancel), retry)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    config = OperatorConfig.from_env()

    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = config.request_timeout
    settings.execution.max_workers = 4

    health.start_server(config.metrics_port)

    if config.enable_controller:
        load_kube_config()
        store = KubernetesStore(request_timeout=config.request_timeout)
        _reconcilers.update(build_reconcilers(config, store))

    health.set_ready(True)


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Abort in-flight retries."""
    health.set_ready(False)
    _cancel.set()


@kopf.on.create(API_GROUP_VERSION, KIND_ZENLOCK)
@kopf.on.update(API_GROUP_VERSION, KIND_ZENLOCK)
@kopf.on.resume(API_GROUP_VERSION, KIND_ZENLOCK)
def handle_zenlock(name: str, namespace: str, retry: int = 0, **_: Any) -> None:
    """Handle ZenLock reconciliation."""
    _run("zenlock", name, namespace, retry)


# The ZenLock finalizer is managed by the reconciler itself; kopf only needs
# to call in while the object is being deleted.
@kopf.on.delete(API_GROUP_VERSION, KIND_ZENLOCK, optional=True)
def handle_zenlock_delete(name: str, namespace: str, retry: int = 0, **_: Any) -> None:
    """Handle ZenLock deletion."""
    _run("zenlock", name, namespace, retry)


@kopf.on.create("v1", "secrets", labels={LABEL_POD_NAME: kopf.PRESENT})
@kopf.on.update("v1", "secrets", labels={LABEL_POD_NAME: kopf.PRESENT})
@kopf.on.resume("v1", "secrets", labels={LABEL_POD_NAME: kopf.PRESENT})
def handle_secret(name: str, namespace: str, retry: int = 0, **_: Any) -> None:
    """Link an injected Secret to its Pod, or delete it once orphaned."""
    _run("secret", name, namespace, retry)
