"""Bounded exponential-backoff retries for calls against the Kubernetes API."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable, TypeVar

from .errors import is_retryable_error, sanitize_exception

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 0.1
DEFAULT_MAX_DELAY = 5.0
DEFAULT_MULTIPLIER = 2.0


class RetryCancelledError(Exception):
    """The cancel event fired before or between attempts."""


class RetryExhaustedError(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"max retry attempts ({attempts}) exceeded: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


@dataclasses.dataclass(frozen=True)
class RetryConfig:
    """Retry behaviour. Delays are in seconds."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    multiplier: float = DEFAULT_MULTIPLIER
    is_retryable: Callable[[BaseException], bool] | None = is_retryable_error

    def normalized(self) -> RetryConfig:
        """Return a copy with invalid or missing fields replaced by defaults."""
        max_attempts = self.max_attempts if self.max_attempts and self.max_attempts >= 1 else DEFAULT_MAX_ATTEMPTS
        initial_delay = self.initial_delay if self.initial_delay and self.initial_delay > 0 else DEFAULT_INITIAL_DELAY
        max_delay = self.max_delay if self.max_delay and self.max_delay > 0 else DEFAULT_MAX_DELAY
        if max_delay < initial_delay:
            max_delay = max(DEFAULT_MAX_DELAY, initial_delay)
        multiplier = self.multiplier if self.multiplier and self.multiplier > 0 else DEFAULT_MULTIPLIER
        return dataclasses.replace(
            self,
            max_attempts=max_attempts,
            initial_delay=initial_delay,
            max_delay=max_delay,
            multiplier=multiplier,
            is_retryable=self.is_retryable or is_retryable_error,
        )

    def backoff(self, attempt: int) -> float:
        """Delay to wait after the zero-based ``attempt`` failed."""
        return min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)


def run_with_retry(
    operation: Callable[[], T],
    config: RetryConfig | None = None,
    cancel: threading.Event | None = None,
) -> T:
    """Run ``operation`` until it succeeds, fails terminally or attempts run out.

    Args:
        operation: Zero-argument callable performing one attempt
        config: Retry behaviour (defaults when omitted)
        cancel: Event that aborts the retry loop when set

    Returns:
        Whatever ``operation`` returns on its first successful attempt

    Raises:
        RetryCancelledError: If ``cancel`` is set before an attempt or during a backoff wait
        RetryExhaustedError: If every attempt failed with a retryable error
        Exception: The operation's own error when it is not retryable
    """
    cfg = (config or RetryConfig()).normalized()
    cancel = cancel or threading.Event()
    last_error: BaseException | None = None
    attempt = 0

    while True:
        if cancel.is_set():
            raise RetryCancelledError("context cancelled") from last_error

        try:
            return operation()
        except Exception as e:
            if not cfg.is_retryable(e):
                raise
            if attempt + 1 >= cfg.max_attempts:
                raise RetryExhaustedError(cfg.max_attempts, e) from e
            last_error = e

        delay = cfg.backoff(attempt)
        logger.debug(
            f"Attempt {attempt + 1}/{cfg.max_attempts} failed, retrying in {delay:.3f}s: "
            f"{sanitize_exception(last_error)}"
        )
        if cancel.wait(delay):
            raise RetryCancelledError("context cancelled during retry") from last_error
        attempt += 1
