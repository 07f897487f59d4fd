"""Base reconciler class with common functionality for all reconcilers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

from ..constants import CONTROLLER_NAME, FINALIZER
from ..logging import log_resource_event
from ..outcome import Failed, ReconcileOutcome
from ..store import NamespacedName, ObjectStore
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.retry import RetryCancelledError


class BaseReconciler:
    """Base class for reconcilers driven by kopf change handlers."""

    def __init__(self, kind: str, store: ObjectStore):
        """Initialize base reconciler.

        Args:
            kind: The Kubernetes resource kind this reconciler owns
            store: Remote object store
        """
        self.kind = kind
        self.store = store
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_debug(self, meta: dict[str, Any], message: str, reason: str = "Debug", **kwargs: Any) -> None:
        self._log(logging.DEBUG, meta, message, "debug", reason, **kwargs)

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message."""
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        if error is not None:
            kwargs["error"] = sanitize_exception(error)
            kwargs["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **kwargs)

    @staticmethod
    def has_finalizer(meta: dict[str, Any]) -> bool:
        return FINALIZER in (meta.get("finalizers") or [])

    @staticmethod
    def ensure_finalizer(meta: dict[str, Any]) -> bool:
        """Add the finalizer to metadata; return True if it was missing."""
        finalizers = meta.get("finalizers") or []
        if FINALIZER in finalizers:
            return False
        meta["finalizers"] = [*finalizers, FINALIZER]
        return True

    @staticmethod
    def remove_finalizer(meta: dict[str, Any]) -> bool:
        """Remove the finalizer from metadata; return True if it was present."""
        finalizers = meta.get("finalizers") or []
        if FINALIZER not in finalizers:
            return False
        meta["finalizers"] = [f for f in finalizers if f != FINALIZER]
        return True

    def reconcile(self, key: NamespacedName, cancel: threading.Event | None = None) -> ReconcileOutcome:
        """Run one reconcile pass for ``key``."""
        cancel = cancel or threading.Event()
        with with_correlation_id():
            if cancel.is_set():
                return Failed(RetryCancelledError("context cancelled"))
            start_time = time.monotonic()
            try:
                return self._reconcile(key, cancel)
            except Exception as e:
                meta = {"name": key.name, "namespace": key.namespace}
                self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                return Failed(e)
            finally:
                self.observe_duration(key, time.monotonic() - start_time)

    def _reconcile(self, key: NamespacedName, cancel: threading.Event) -> ReconcileOutcome:
        raise NotImplementedError

    def observe_duration(self, key: NamespacedName, duration: float) -> None:
        """Hook for per-kind duration metrics."""

