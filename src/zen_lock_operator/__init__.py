"""Operator that verifies ZenLocks and manages the Secrets injected from them."""

__version__ = "0.1.0"
