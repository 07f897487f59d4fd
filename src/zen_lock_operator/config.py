"""Runtime configuration for the zen-lock operator.

Everything is read from environment variables once at startup into an
``OperatorConfig``. The private key is the one value that may change while
the operator runs; it is re-read only through ``KeyMaterialSource.read()``.
"""

from __future__ import annotations

import dataclasses
import importlib
import logging
import os
import re
from typing import Any, Callable, Mapping

from .constants import (
    DEFAULT_ORPHAN_TTL_SECONDS,
    ENV_DECRYPTOR,
    ENV_ENABLE_CONTROLLER,
    ENV_METRICS_PORT,
    ENV_ORPHAN_TTL,
    ENV_PRIVATE_KEY,
    ENV_REQUEST_TIMEOUT,
)

logger = logging.getLogger(__name__)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string ("90s", "10m", "1h30m") into seconds.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip()
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return sign * total


def load_orphan_ttl(environ: Mapping[str, str] | None = None) -> float:
    """Orphan TTL in seconds; invalid or absent values fall back to the default."""
    environ = os.environ if environ is None else environ
    raw = environ.get(ENV_ORPHAN_TTL, "")
    if not raw:
        return DEFAULT_ORPHAN_TTL_SECONDS
    try:
        ttl = parse_duration(raw)
    except ValueError:
        logger.warning(
            f"Invalid {ENV_ORPHAN_TTL}={raw!r}, using default of {DEFAULT_ORPHAN_TTL_SECONDS:.0f}s"
        )
        return DEFAULT_ORPHAN_TTL_SECONDS
    if ttl < 0:
        logger.warning(f"Negative {ENV_ORPHAN_TTL}={raw!r}, using default")
        return DEFAULT_ORPHAN_TTL_SECONDS
    return ttl


class KeyMaterialSource:
    """Reads the age identity used to verify ZenLocks.

    An empty string means the key is not configured.
    """

    def __init__(self, env_var: str = ENV_PRIVATE_KEY, environ: Mapping[str, str] | None = None):
        self.env_var = env_var
        self._environ = environ

    def read(self) -> str:
        environ = os.environ if self._environ is None else self._environ
        return environ.get(self.env_var, "").strip()


def load_decryptor(spec: str) -> Any:
    """Load a decryption capability from a "module:attribute" import path.

    A callable attribute is treated as a factory and called without arguments.
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"{ENV_DECRYPTOR} must look like 'package.module:attribute', got {spec!r}")
    target = getattr(importlib.import_module(module_name), attr)
    if isinstance(target, type) or (callable(target) and not hasattr(target, "decrypt_map")):
        return target()
    return target


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclasses.dataclass
class OperatorConfig:
    """Settings for one operator process."""

    orphan_ttl: float = DEFAULT_ORPHAN_TTL_SECONDS
    metrics_port: int = 8080
    request_timeout: float = 30.0
    decryptor_path: str = ""
    enable_controller: bool = True
    key_source: KeyMaterialSource = dataclasses.field(default_factory=KeyMaterialSource)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OperatorConfig:
        environ = os.environ if environ is None else environ
        return cls(
            orphan_ttl=load_orphan_ttl(environ),
            metrics_port=int(environ.get(ENV_METRICS_PORT, "8080")),
            request_timeout=float(environ.get(ENV_REQUEST_TIMEOUT, "30.0")),
            decryptor_path=environ.get(ENV_DECRYPTOR, ""),
            enable_controller=_env_bool(environ.get(ENV_ENABLE_CONTROLLER), True),
            key_source=KeyMaterialSource(environ=environ if environ is not os.environ else None),
        )

    def build_decryptor(self, loader: Callable[[str], Any] = load_decryptor) -> Any | None:
        if not self.decryptor_path:
            return None
        return loader(self.decryptor_path)
