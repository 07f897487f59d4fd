"""Reconcilers for ZenLocks and the Secrets injected from them."""

from .base import BaseReconciler
from .secret import SecretReconciler
from .zenlock import ZenLockReconciler

__all__ = ["BaseReconciler", "SecretReconciler", "ZenLockReconciler"]
