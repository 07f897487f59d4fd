"""In-process ZenLock cache shared with the secret injector.

The operator only drops entries: a ZenLock that verified successfully may
have changed, so the injector must read it fresh.
"""

from __future__ import annotations

import threading
from typing import Any

from .. import metrics
from ..store import NamespacedName

_cache: dict[NamespacedName, Any] = {}
_lock = threading.Lock()


def invalidate_zenlock(key: NamespacedName) -> None:
    """Drop the cached copy of one ZenLock so the next lookup reads fresh data."""
    with _lock:
        _cache.pop(key, None)
        metrics.update_cache_size(len(_cache))


def invalidate_cache() -> None:
    """Invalidate all cache entries."""
    with _lock:
        _cache.clear()
        metrics.update_cache_size(0)


def cache_size() -> int:
    return len(_cache)
