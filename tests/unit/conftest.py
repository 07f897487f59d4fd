"""Shared fixtures for unit tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from zen_lock_operator.utils import cache
from zen_lock_operator.utils.errors import ErrorKind, StoreError


class FakeStore:
    """In-memory ObjectStore with resourceVersion conflicts and injectable failures."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str, str]] = []
        self.failures: dict[tuple[str, str, str, str], list[Exception]] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        obj = copy.deepcopy(obj)
        meta = obj.setdefault("metadata", {})
        meta.setdefault("namespace", "default")
        meta["resourceVersion"] = self._next_version()
        self.objects[(kind, meta["namespace"], meta["name"])] = obj
        return obj

    def fail(self, op: str, kind: str, namespace: str, name: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls of ``op`` on one object."""
        self.failures.setdefault((op, kind, namespace, name), []).extend(errors)

    def count(self, op: str, kind: str | None = None) -> int:
        return sum(1 for call in self.calls if call[0] == op and (kind is None or call[1] == kind))

    def _record(self, op: str, kind: str, namespace: str, name: str) -> None:
        self.calls.append((op, kind, namespace, name))
        queued = self.failures.get((op, kind, namespace, name))
        if queued:
            raise queued.pop(0)

    def _existing(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        try:
            return self.objects[(kind, namespace, name)]
        except KeyError:
            raise StoreError(f'{kind} "{name}" not found', ErrorKind.NOT_FOUND, status=404) from None

    def _check_version(self, existing: dict[str, Any], obj: dict[str, Any]) -> None:
        sent = obj.get("metadata", {}).get("resourceVersion")
        if sent is not None and sent != existing["metadata"]["resourceVersion"]:
            raise StoreError("the object has been modified", ErrorKind.CONFLICT, status=409)

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        self._record("get", kind, namespace, name)
        return copy.deepcopy(self._existing(kind, namespace, name))

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        self._record("update", kind, meta["namespace"], meta["name"])
        existing = self._existing(kind, meta["namespace"], meta["name"])
        self._check_version(existing, obj)
        stored = copy.deepcopy(obj)
        if "status" in existing:
            stored["status"] = copy.deepcopy(existing["status"])
        stored["metadata"]["resourceVersion"] = self._next_version()
        if stored["metadata"].get("deletionTimestamp") and not stored["metadata"].get("finalizers"):
            del self.objects[(kind, meta["namespace"], meta["name"])]
        else:
            self.objects[(kind, meta["namespace"], meta["name"])] = stored
        return copy.deepcopy(stored)

    def update_status(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj["metadata"]
        self._record("update_status", kind, meta["namespace"], meta["name"])
        existing = self._existing(kind, meta["namespace"], meta["name"])
        self._check_version(existing, obj)
        existing["status"] = copy.deepcopy(obj.get("status") or {})
        existing["metadata"]["resourceVersion"] = self._next_version()
        return copy.deepcopy(existing)

    def delete(self, kind: str, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self._record("delete", kind, meta["namespace"], meta["name"])
        self._existing(kind, meta["namespace"], meta["name"])
        del self.objects[(kind, meta["namespace"], meta["name"])]

    def list_by_label(self, kind: str, namespace: str | None, labels: dict[str, str]) -> list[dict[str, Any]]:
        self.calls.append(("list", kind, namespace or "", ""))
        result = []
        for (obj_kind, obj_ns, _), obj in self.objects.items():
            if obj_kind != kind or (namespace is not None and obj_ns != namespace):
                continue
            obj_labels = obj["metadata"].get("labels") or {}
            if all(obj_labels.get(k) == v for k, v in labels.items()):
                result.append(copy.deepcopy(obj))
        return result

    def exists(self, kind: str, namespace: str, name: str) -> bool:
        return (kind, namespace, name) in self.objects


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture(autouse=True)
def clear_zenlock_cache():
    cache.invalidate_cache()
    yield
    cache.invalidate_cache()
