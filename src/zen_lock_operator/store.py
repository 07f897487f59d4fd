"""Access to ZenLocks, Secrets and Pods in the Kubernetes API.

Reconcilers only see the ``ObjectStore`` protocol; ``KubernetesStore`` is the
adapter that talks to the API server and turns every ``ApiException`` into a
``StoreError`` carrying an ``ErrorKind``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, NamedTuple, Protocol

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from .constants import API_GROUP, API_VERSION, KIND_POD, KIND_SECRET, KIND_ZENLOCK, PLURAL_ZENLOCKS
from .utils.errors import ErrorKind, StoreError

logger = logging.getLogger(__name__)


class NamespacedName(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def of(cls, obj: dict[str, Any]) -> NamespacedName:
        meta = obj.get("metadata") or {}
        return cls(meta.get("namespace", "default"), meta.get("name", ""))


class ObjectStore(Protocol):
    """CRUD and label listing against the remote store."""

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]: ...

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]: ...

    def update_status(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]: ...

    def delete(self, kind: str, obj: dict[str, Any]) -> None: ...

    def list_by_label(
        self, kind: str, namespace: str | None, labels: dict[str, str]
    ) -> list[dict[str, Any]]: ...


def error_kind_for_status(status: int | None, reason: str | None = None) -> ErrorKind:
    """Map an HTTP status (and Kubernetes Status reason) to an ErrorKind."""
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 409:
        return ErrorKind.CONFLICT
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status in (408, 504):
        return ErrorKind.TIMEOUT
    if status == 500:
        return ErrorKind.TIMEOUT if reason == "ServerTimeout" else ErrorKind.INTERNAL
    if status in (400, 422):
        return ErrorKind.BAD_REQUEST
    return ErrorKind.OTHER


def store_error_from_api_exception(e: ApiException) -> StoreError:
    reason = e.reason
    message = e.reason or "API error"
    if e.body:
        try:
            body = json.loads(e.body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, dict):
            reason = body.get("reason") or reason
            message = body.get("message") or message
    return StoreError(message, error_kind_for_status(e.status, reason), status=e.status)


def label_selector(labels: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class KubernetesStore:
    """ObjectStore backed by the kubernetes Python client."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        core_api: client.CoreV1Api | None = None,
        request_timeout: float = 30.0,
    ):
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.core_api = core_api or client.CoreV1Api()
        self.request_timeout = request_timeout
        self._serializer = client.ApiClient()

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._serializer.sanitize_for_serialization(obj)

    def _call(self, fn: Any, **kwargs: Any) -> Any:
        try:
            return fn(_request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            raise store_error_from_api_exception(e) from e

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        if kind == KIND_ZENLOCK:
            return self._call(
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=namespace,
                plural=PLURAL_ZENLOCKS,
                name=name,
            )
        if kind == KIND_SECRET:
            return self._to_dict(self._call(self.core_api.read_namespaced_secret, name=name, namespace=namespace))
        if kind == KIND_POD:
            return self._to_dict(self._call(self.core_api.read_namespaced_pod, name=name, namespace=namespace))
        raise ValueError(f"Unsupported kind: {kind}")

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        key = NamespacedName.of(obj)
        if kind == KIND_ZENLOCK:
            return self._call(
                self.custom_api.replace_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=key.namespace,
                plural=PLURAL_ZENLOCKS,
                name=key.name,
                body=obj,
            )
        if kind == KIND_SECRET:
            return self._to_dict(
                self._call(self.core_api.replace_namespaced_secret, name=key.name, namespace=key.namespace, body=obj)
            )
        raise ValueError(f"Unsupported kind for update: {kind}")

    def update_status(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        if kind != KIND_ZENLOCK:
            raise ValueError(f"Unsupported kind for status update: {kind}")
        key = NamespacedName.of(obj)
        return self._call(
            self.custom_api.replace_namespaced_custom_object_status,
            group=API_GROUP,
            version=API_VERSION,
            namespace=key.namespace,
            plural=PLURAL_ZENLOCKS,
            name=key.name,
            body=obj,
        )

    def delete(self, kind: str, obj: dict[str, Any]) -> None:
        key = NamespacedName.of(obj)
        if kind == KIND_SECRET:
            self._call(self.core_api.delete_namespaced_secret, name=key.name, namespace=key.namespace)
            return
        raise ValueError(f"Unsupported kind for delete: {kind}")

    def list_by_label(
        self, kind: str, namespace: str | None, labels: dict[str, str]
    ) -> list[dict[str, Any]]:
        if kind != KIND_SECRET:
            raise ValueError(f"Unsupported kind for list: {kind}")
        selector = label_selector(labels)
        if namespace is None:
            result = self._call(self.core_api.list_secret_for_all_namespaces, label_selector=selector)
        else:
            result = self._call(self.core_api.list_namespaced_secret, namespace=namespace, label_selector=selector)
        return [self._to_dict(item) for item in result.items]


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
