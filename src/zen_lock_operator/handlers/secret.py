"""Reconciler that links injected Secrets to their Pods.

The injector creates a Secret before the Pod it belongs to exists, so the
Secret cannot carry an owner reference at creation time. This reconciler
adds the reference once the Pod has a UID, and deletes Secrets whose Pod
never shows up within the orphan TTL.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable

from .. import metrics
from ..constants import (
    DEFAULT_ORPHAN_TTL_SECONDS,
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    KIND_POD,
    KIND_SECRET,
    LABEL_POD_NAME,
    LABEL_POD_NAMESPACE,
    REQUEUE_DELAY_POD_NO_UID,
    REQUEUE_DELAY_POD_NOT_FOUND,
)
from ..outcome import DONE, Failed, ReconcileOutcome, RequeueAfter
from ..store import NamespacedName, ObjectStore
from ..utils.errors import StoreError, is_not_found
from ..utils.retry import RetryConfig, run_with_retry
from .base import BaseReconciler

OWNER_RETRY = RetryConfig(
    max_attempts=DEFAULT_RETRY_MAX_ATTEMPTS,
    initial_delay=DEFAULT_RETRY_INITIAL_DELAY,
    max_delay=DEFAULT_RETRY_MAX_DELAY,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a Kubernetes RFC 3339 timestamp."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def pod_owner_reference(pod: dict[str, Any]) -> dict[str, Any]:
    meta = pod["metadata"]
    return {
        "apiVersion": "v1",
        "kind": KIND_POD,
        "name": meta["name"],
        "uid": meta["uid"],
    }


class SecretReconciler(BaseReconciler):
    """Sets the Pod owner reference on injected Secrets, or deletes orphans."""

    def __init__(
        self,
        store: ObjectStore,
        orphan_ttl: float = DEFAULT_ORPHAN_TTL_SECONDS,
        now: Callable[[], datetime] = _utcnow,
        owner_retry: RetryConfig = OWNER_RETRY,
    ):
        super().__init__(KIND_SECRET, store)
        self.orphan_ttl = orphan_ttl
        self.now = now
        self.owner_retry = owner_retry

    def _reconcile(self, key: NamespacedName, cancel: threading.Event) -> ReconcileOutcome:
        try:
            secret = self.store.get(KIND_SECRET, key.namespace, key.name)
        except StoreError as e:
            if is_not_found(e):
                return DONE
            self.log_error(key._asdict(), "Failed to get Secret", error=e)
            return Failed(e)

        meta = secret.get("metadata") or {}
        labels = meta.get("labels") or {}
        pod_name = labels.get(LABEL_POD_NAME)
        pod_namespace = labels.get(LABEL_POD_NAMESPACE)
        if not pod_name or not pod_namespace:
            return DONE

        if meta.get("ownerReferences"):
            return DONE

        pod_key = NamespacedName(pod_namespace, pod_name)
        try:
            pod = self.store.get(KIND_POD, pod_namespace, pod_name)
        except StoreError as e:
            if is_not_found(e):
                return self.handle_missing_pod(key, secret, pod_key)
            self.log_error(meta, "Failed to get Pod for zen-lock secret", error=e, pod=str(pod_key))
            metrics.record_secret_reconcile("error")
            return Failed(e)

        if not (pod.get("metadata") or {}).get("uid"):
            self.log_debug(meta, "Pod exists but has no UID yet, will retry", pod=str(pod_key))
            metrics.record_secret_reconcile("requeued")
            return RequeueAfter(REQUEUE_DELAY_POD_NO_UID)

        return self.link_owner(key, meta, pod, cancel)

    def handle_missing_pod(
        self,
        key: NamespacedName,
        secret: dict[str, Any],
        pod_key: NamespacedName,
    ) -> ReconcileOutcome:
        meta = secret.get("metadata") or {}
        created = parse_timestamp(meta.get("creationTimestamp"))
        age = (self.now() - created).total_seconds() if created else 0.0

        if age <= self.orphan_ttl:
            self.log_debug(meta, "Pod not found for Secret, will retry", pod=str(pod_key), age=age)
            metrics.record_secret_reconcile("requeued")
            return RequeueAfter(REQUEUE_DELAY_POD_NOT_FOUND)

        self.log_info(
            meta, "Deleting orphaned zen-lock secret (Pod not found)", event="deletion",
            reason="OrphanDeleted", pod=str(pod_key), age=age,
        )
        try:
            self.store.delete(KIND_SECRET, secret)
        except StoreError as e:
            if not is_not_found(e):
                self.log_error(meta, "Failed to delete orphaned zen-lock secret", error=e)
                metrics.record_secret_reconcile("error")
                return Failed(e)
        metrics.record_secret_reconcile("orphan_deleted")
        return DONE

    def link_owner(
        self,
        key: NamespacedName,
        meta: dict[str, Any],
        pod: dict[str, Any],
        cancel: threading.Event,
    ) -> ReconcileOutcome:
        """Attach the Pod owner reference, re-reading the Secret before each write."""
        owner_ref = pod_owner_reference(pod)

        def attempt() -> bool:
            current = self.store.get(KIND_SECRET, key.namespace, key.name)
            current_meta = current.setdefault("metadata", {})
            if current_meta.get("ownerReferences"):
                return False
            current_meta["ownerReferences"] = [owner_ref]
            self.store.update(KIND_SECRET, current)
            return True

        try:
            written = run_with_retry(attempt, self.owner_retry, cancel)
        except Exception as e:
            if is_not_found(e):
                return DONE
            self.log_error(meta, "Failed to update Secret with OwnerReference after retries", error=e, pod=owner_ref["name"])
            metrics.record_secret_reconcile("error")
            return Failed(e)

        if written:
            self.log_info(meta, "Set OwnerReference on Secret", event="linked", reason="OwnerLinked", pod=owner_ref["name"])
            metrics.record_secret_reconcile("linked")
        return DONE
