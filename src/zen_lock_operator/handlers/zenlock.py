"""Reconciler for ZenLock resources."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from .. import metrics
from ..config import KeyMaterialSource
from ..constants import (
    DEFAULT_ALGORITHM,
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    KIND_SECRET,
    KIND_ZENLOCK,
    LABEL_ZENLOCK_NAME,
    PHASE_ERROR,
    PHASE_READY,
    REASON_DECRYPTION_FAILED,
    REASON_KEY_NOT_FOUND,
    REASON_KEY_VALID,
    REASON_VALIDATION_FAILED,
    REQUEUE_DELAY_KEY_NOT_FOUND,
)
from ..crypto import Decryptor
from ..outcome import DONE, REQUEUE_NOW, Failed, ReconcileOutcome, RequeueAfter
from ..store import NamespacedName, ObjectStore
from ..utils import cache
from ..utils.conditions import set_decryptable_condition
from ..utils.errors import CleanupIncompleteError, StoreError, is_not_found
from ..utils.retry import RetryCancelledError, RetryConfig, run_with_retry
from ..utils.validation import ValidationError, validate_zenlock
from .base import BaseReconciler

STATUS_RETRY = RetryConfig(
    max_attempts=DEFAULT_RETRY_MAX_ATTEMPTS,
    initial_delay=DEFAULT_RETRY_INITIAL_DELAY,
    max_delay=DEFAULT_RETRY_MAX_DELAY,
)


class ZenLockReconciler(BaseReconciler):
    """Keeps a ZenLock's finalizer, status and injected Secrets in order.

    One pass handles exactly one situation, in this order: deletion cleanup,
    adding the finalizer, missing key material, invalid spec, and finally
    verifying that the encrypted data decrypts with the configured key.
    """

    def __init__(
        self,
        store: ObjectStore,
        decryptor: Decryptor | None = None,
        key_source: KeyMaterialSource | None = None,
        invalidate: Callable[[NamespacedName], None] = cache.invalidate_zenlock,
        status_retry: RetryConfig = STATUS_RETRY,
    ):
        super().__init__(KIND_ZENLOCK, store)
        self.decryptor = decryptor
        self.key_source = key_source or KeyMaterialSource()
        self.invalidate = invalidate
        self.status_retry = status_retry
        self._private_key = self.key_source.read()

    def reload_key_material(self) -> str:
        """Re-read the private key, e.g. after it was restored or rotated."""
        self._private_key = self.key_source.read()
        return self._private_key

    def observe_duration(self, key: NamespacedName, duration: float) -> None:
        metrics.record_reconcile_duration(key.namespace, key.name, duration)

    def _reconcile(self, key: NamespacedName, cancel: threading.Event) -> ReconcileOutcome:
        try:
            zenlock = self.store.get(KIND_ZENLOCK, key.namespace, key.name)
        except StoreError as e:
            if is_not_found(e):
                return DONE
            self.log_error(key._asdict(), "Failed to get ZenLock", error=e)
            return Failed(e)

        meta = zenlock.setdefault("metadata", {})

        if meta.get("deletionTimestamp"):
            return self.handle_deletion(key, zenlock, cancel)

        if self.ensure_finalizer(meta):
            try:
                self.store.update(KIND_ZENLOCK, zenlock)
            except StoreError as e:
                self.log_error(meta, "Failed to add finalizer", error=e, reason="FinalizerFailed")
                return Failed(e)
            self.log_debug(meta, "Added finalizer", reason="FinalizerAdded")
            return REQUEUE_NOW

        if not self._private_key and not self.reload_key_material():
            self.log_error(meta, "Cannot decrypt ZenLock: private key not configured", reason=REASON_KEY_NOT_FOUND)
            metrics.record_reconcile(key.namespace, key.name, "error")
            cancelled = self.update_status(key, PHASE_ERROR, REASON_KEY_NOT_FOUND, "Private key not configured", cancel)
            return cancelled or RequeueAfter(REQUEUE_DELAY_KEY_NOT_FOUND)

        spec = zenlock.get("spec") or {}
        algorithm = spec.get("algorithm") or DEFAULT_ALGORITHM
        try:
            validate_zenlock(spec)
        except ValidationError as e:
            self.log_warning(meta, f"Invalid ZenLock: {e}", reason=REASON_VALIDATION_FAILED)
            metrics.record_validation_failure(key.namespace, e.reason)
            if e.reason == "unsupported_algorithm":
                metrics.record_algorithm_error(algorithm, "unsupported")
            metrics.record_reconcile(key.namespace, key.name, "error")
            return self.update_status(key, PHASE_ERROR, REASON_VALIDATION_FAILED, str(e), cancel) or DONE

        if self.decryptor is None:
            self.log_warning(meta, "No decryptor configured, skipping verification", reason="NoDecryptor")
            return DONE

        return self.verify(key, meta, spec, algorithm, cancel)

    def verify(
        self,
        key: NamespacedName,
        meta: dict[str, Any],
        spec: dict[str, Any],
        algorithm: str,
        cancel: threading.Event,
    ) -> ReconcileOutcome:
        """Check that every encrypted value decrypts with the configured key."""
        metrics.record_algorithm_usage(algorithm, "decrypt")
        decrypt_start = time.monotonic()
        try:
            self.decryptor.decrypt_map(spec.get("encryptedData") or {}, self._private_key)
        except Exception as e:
            decrypt_duration = time.monotonic() - decrypt_start
            self.log_error(meta, "Failed to decrypt ZenLock", error=e, reason=REASON_DECRYPTION_FAILED)
            metrics.record_decryption(key.namespace, key.name, "error", decrypt_duration)
            metrics.record_algorithm_error(algorithm, "decryption_failed")
            metrics.record_reconcile(key.namespace, key.name, "error")
            # Static failure: only an edit of the ZenLock or a key reload can fix it.
            return self.update_status(
                key, PHASE_ERROR, REASON_DECRYPTION_FAILED, f"Decryption failed: {e}", cancel
            ) or DONE

        metrics.record_decryption(key.namespace, key.name, "success", time.monotonic() - decrypt_start)
        self.invalidate(key)
        cancelled = self.update_status(
            key, PHASE_READY, REASON_KEY_VALID, "Private key loaded and decryption successful", cancel
        )
        metrics.record_reconcile(key.namespace, key.name, "success")
        return cancelled or DONE

    def update_status(
        self,
        key: NamespacedName,
        phase: str,
        reason: str,
        message: str,
        cancel: threading.Event,
    ) -> Failed | None:
        """Write phase and Decryptable condition, re-reading the ZenLock on every attempt.

        Returns:
            A Failed outcome if the write was cancelled, None otherwise. Other
            write failures are logged and swallowed.
        """

        def attempt() -> None:
            current = self.store.get(KIND_ZENLOCK, key.namespace, key.name)
            status = dict(current.get("status") or {})
            status["phase"] = phase
            status["conditions"] = set_decryptable_condition(
                list(status.get("conditions") or []), phase, reason, message
            )
            current["status"] = status
            self.store.update_status(KIND_ZENLOCK, current)

        try:
            run_with_retry(attempt, self.status_retry, cancel)
        except RetryCancelledError as e:
            return Failed(e)
        except Exception as e:
            if not is_not_found(e):
                self.log_error(
                    key._asdict(), "Failed to update ZenLock status after retries", error=e, reason="StatusUpdateFailed"
                )
        return None

    def handle_deletion(
        self,
        key: NamespacedName,
        zenlock: dict[str, Any],
        cancel: threading.Event,
    ) -> ReconcileOutcome:
        """Delete the ZenLock's injected Secrets, then release the finalizer."""
        meta = zenlock["metadata"]
        if not self.has_finalizer(meta):
            return DONE

        self.log_info(meta, "ZenLock is being deleted, cleaning up associated Secrets", event="deletion", reason="Deletion")

        try:
            secrets = self.store.list_by_label(KIND_SECRET, None, {LABEL_ZENLOCK_NAME: key.name})
        except StoreError as e:
            self.log_error(meta, "Failed to list Secrets for cleanup", error=e, reason="CleanupFailed")
            metrics.record_reconcile(key.namespace, key.name, "error")
            return Failed(e)

        failed: list[str] = []
        for secret in secrets:
            secret_key = NamespacedName.of(secret)
            if secret_key.namespace != key.namespace:
                continue
            try:
                self.store.delete(KIND_SECRET, secret)
            except StoreError as e:
                if is_not_found(e):
                    continue
                self.log_error(meta, "Failed to delete Secret", error=e, reason="CleanupFailed", secret=secret_key.name)
                failed.append(secret_key.name)
                continue
            self.log_info(meta, "Deleted Secret", event="deletion", reason="SecretDeleted", secret=secret_key.name)

        if failed:
            # Keep the finalizer so the next pass retries the remaining Secrets.
            metrics.record_reconcile(key.namespace, key.name, "error")
            return Failed(CleanupIncompleteError(failed))

        def release() -> None:
            current = self.store.get(KIND_ZENLOCK, key.namespace, key.name)
            current_meta = current.setdefault("metadata", {})
            if self.remove_finalizer(current_meta):
                self.store.update(KIND_ZENLOCK, current)

        try:
            run_with_retry(release, self.status_retry, cancel)
        except RetryCancelledError as e:
            return Failed(e)
        except Exception as e:
            if not is_not_found(e):
                self.log_error(meta, "Failed to remove finalizer", error=e, reason="FinalizerFailed")
                metrics.record_reconcile(key.namespace, key.name, "error")
                return Failed(e)

        self.log_info(meta, "ZenLock deletion complete", event="deletion", reason="DeletionComplete")
        metrics.record_reconcile(key.namespace, key.name, "success")
        return DONE

