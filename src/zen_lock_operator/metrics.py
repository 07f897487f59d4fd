"""Prometheus metrics for the zen-lock operator."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

_BUCKETS = [0.001 * (2 ** i) for i in range(10)]

# Reconciliation metrics
reconcile_total = Counter(
    "zenlock_reconcile_total",
    "Total number of ZenLock reconciliations",
    ["namespace", "name", "result"],
)

reconcile_duration_seconds = Histogram(
    "zenlock_reconcile_duration_seconds",
    "Duration of ZenLock reconciliations in seconds",
    ["namespace", "name"],
    buckets=_BUCKETS,
)

secret_reconcile_total = Counter(
    "zenlock_secret_reconcile_total",
    "Total number of injected Secret reconciliations by outcome",
    ["result"],
)

# Decryption metrics
decryption_total = Counter(
    "zenlock_decryption_total",
    "Total number of decryption operations",
    ["namespace", "zenlock_name", "result"],
)

decryption_duration_seconds = Histogram(
    "zenlock_decryption_duration_seconds",
    "Duration of decryption operations in seconds",
    ["namespace", "zenlock_name"],
    buckets=_BUCKETS,
)

# Cache metrics
cache_size = Gauge(
    "zenlock_cache_size",
    "Current number of entries in the ZenLock cache",
)

# Validation and algorithm metrics
validation_failures_total = Counter(
    "zenlock_webhook_validation_failures_total",
    "Total number of validation failures",
    ["namespace", "reason"],
)

algorithm_usage_total = Counter(
    "zenlock_algorithm_usage_total",
    "Total number of operations using each algorithm",
    ["algorithm", "operation"],
)

algorithm_errors_total = Counter(
    "zenlock_algorithm_errors_total",
    "Total number of algorithm-related errors",
    ["algorithm", "reason"],
)


def record_reconcile(namespace: str, name: str, result: str) -> None:
    try:
        reconcile_total.labels(namespace=namespace, name=name, result=result).inc()
    except Exception as e:
        logger.debug(f"Failed to record reconcile metric: {e}")


def record_reconcile_duration(namespace: str, name: str, duration: float) -> None:
    try:
        reconcile_duration_seconds.labels(namespace=namespace, name=name).observe(duration)
    except Exception as e:
        logger.debug(f"Failed to record reconcile duration: {e}")


def record_secret_reconcile(result: str) -> None:
    try:
        secret_reconcile_total.labels(result=result).inc()
    except Exception as e:
        logger.debug(f"Failed to record secret reconcile metric: {e}")


def record_decryption(namespace: str, zenlock_name: str, result: str, duration: float) -> None:
    try:
        decryption_total.labels(namespace=namespace, zenlock_name=zenlock_name, result=result).inc()
        decryption_duration_seconds.labels(namespace=namespace, zenlock_name=zenlock_name).observe(duration)
    except Exception as e:
        logger.debug(f"Failed to record decryption metric: {e}")


def record_validation_failure(namespace: str, reason: str) -> None:
    try:
        validation_failures_total.labels(namespace=namespace, reason=reason).inc()
    except Exception as e:
        logger.debug(f"Failed to record validation failure: {e}")


def record_algorithm_usage(algorithm: str, operation: str) -> None:
    try:
        algorithm_usage_total.labels(algorithm=algorithm, operation=operation).inc()
    except Exception as e:
        logger.debug(f"Failed to record algorithm usage: {e}")


def record_algorithm_error(algorithm: str, reason: str) -> None:
    try:
        algorithm_errors_total.labels(algorithm=algorithm, reason=reason).inc()
    except Exception as e:
        logger.debug(f"Failed to record algorithm error: {e}")


def update_cache_size(size: int) -> None:
    try:
        cache_size.set(size)
    except Exception as e:
        logger.debug(f"Failed to update cache size: {e}")
