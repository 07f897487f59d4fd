"""Error taxonomy for store calls and sanitization of error text."""

from __future__ import annotations

import enum
import re


class ErrorKind(str, enum.Enum):
    """Closed set of failure kinds produced at the store boundary."""

    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    TIMEOUT = "Timeout"
    RATE_LIMITED = "RateLimited"
    INTERNAL = "InternalError"
    BAD_REQUEST = "BadRequest"
    OTHER = "Other"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED, ErrorKind.INTERNAL, ErrorKind.CONFLICT}
)


class StoreError(Exception):
    """A failed call against the remote object store."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status = status


class CleanupIncompleteError(Exception):
    """Some dependent Secrets could not be deleted during ZenLock cleanup."""

    def __init__(self, failed: list[str]):
        super().__init__(f"failed to delete {len(failed)} secret(s): {', '.join(failed)}")
        self.failed = failed


def classify_error(error: BaseException) -> ErrorKind:
    """Return the ErrorKind of an exception; anything not from the store is OTHER."""
    if isinstance(error, StoreError):
        return error.kind
    return ErrorKind.OTHER


def is_not_found(error: BaseException) -> bool:
    return classify_error(error) is ErrorKind.NOT_FOUND


def is_retryable_error(error: BaseException) -> bool:
    """Default retry classifier: transient store failures and write conflicts."""
    return classify_error(error) in RETRYABLE_KINDS


# Patterns that might expose key material
SENSITIVE_PATTERNS = [
    r"(AGE-SECRET-KEY-1)[0-9A-Z]+",
    r"(-----BEGIN AGE ENCRYPTED FILE-----)[\s\S]*?-----END AGE ENCRYPTED FILE-----",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "private_key",
    "privatekey",
    "identity",
    "password",
    "token",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove key material.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{field}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))
