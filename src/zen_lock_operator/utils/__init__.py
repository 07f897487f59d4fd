"""Utility functions for the zen-lock operator."""

from .conditions import get_condition, set_decryptable_condition, update_condition
from .context import (
    get_context_dict,
    get_correlation_id,
    set_correlation_id,
    with_correlation_id,
)
from .errors import (
    ErrorKind,
    StoreError,
    classify_error,
    is_not_found,
    is_retryable_error,
    sanitize_exception,
)
from .retry import RetryCancelledError, RetryConfig, RetryExhaustedError, run_with_retry
from .validation import ValidationError, validate_zenlock

__all__ = [
    "update_condition",
    "set_decryptable_condition",
    "get_condition",
    "set_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "ErrorKind",
    "StoreError",
    "classify_error",
    "is_not_found",
    "is_retryable_error",
    "sanitize_exception",
    "RetryConfig",
    "RetryCancelledError",
    "RetryExhaustedError",
    "run_with_retry",
    "ValidationError",
    "validate_zenlock",
]
