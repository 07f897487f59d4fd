"""Tests for the Kubernetes store adapter."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from kubernetes.client.exceptions import ApiException

from zen_lock_operator.constants import KIND_POD, KIND_SECRET, KIND_ZENLOCK
from zen_lock_operator.store import (
    KubernetesStore,
    NamespacedName,
    error_kind_for_status,
    label_selector,
    store_error_from_api_exception,
)
from zen_lock_operator.utils.errors import ErrorKind, StoreError


def api_exception(status, reason=None, message=None):
    error = ApiException(status=status, reason=reason or "Error")
    if reason or message:
        error.body = json.dumps({"kind": "Status", "reason": reason, "message": message})
    return error


@pytest.fixture
def custom_api():
    return MagicMock()


@pytest.fixture
def core_api():
    return MagicMock()


@pytest.fixture
def kube_store(custom_api, core_api):
    return KubernetesStore(custom_api=custom_api, core_api=core_api, request_timeout=7.0)


ZENLOCK = {"metadata": {"name": "zl", "namespace": "ns"}}
SECRET = {"metadata": {"name": "s1", "namespace": "ns"}}


class TestErrorMapping:
    """Test cases for HTTP status to ErrorKind mapping."""

    @pytest.mark.parametrize(
        "status,reason,kind",
        [
            (404, None, ErrorKind.NOT_FOUND),
            (409, None, ErrorKind.CONFLICT),
            (429, None, ErrorKind.RATE_LIMITED),
            (408, None, ErrorKind.TIMEOUT),
            (504, None, ErrorKind.TIMEOUT),
            (500, "ServerTimeout", ErrorKind.TIMEOUT),
            (500, "InternalError", ErrorKind.INTERNAL),
            (400, None, ErrorKind.BAD_REQUEST),
            (422, None, ErrorKind.BAD_REQUEST),
            (403, None, ErrorKind.OTHER),
            (None, None, ErrorKind.OTHER),
        ],
    )
    def test_error_kind_for_status(self, status, reason, kind):
        assert error_kind_for_status(status, reason) is kind

    def test_reason_from_body(self):
        error = store_error_from_api_exception(api_exception(500, "ServerTimeout", "the server timed out"))
        assert error.kind is ErrorKind.TIMEOUT
        assert error.status == 500
        assert str(error) == "the server timed out"

    def test_unparseable_body(self):
        exc = ApiException(status=409, reason="Conflict")
        exc.body = "not json"
        error = store_error_from_api_exception(exc)
        assert error.kind is ErrorKind.CONFLICT
        assert str(error) == "Conflict"

    @pytest.mark.parametrize("body", ['["a", "b"]', '"plain string"', "42", "null"])
    def test_non_object_json_body(self, body):
        """Test that a JSON body that is not an object keeps the status mapping."""
        exc = ApiException(status=429, reason="Too Many Requests")
        exc.body = body
        error = store_error_from_api_exception(exc)
        assert isinstance(error, StoreError)
        assert error.kind is ErrorKind.RATE_LIMITED
        assert str(error) == "Too Many Requests"


class TestHelpers:
    def test_label_selector_is_sorted(self):
        assert label_selector({"b": "2", "a": "1"}) == "a=1,b=2"

    def test_namespaced_name(self):
        key = NamespacedName.of(SECRET)
        assert key == NamespacedName("ns", "s1")
        assert str(key) == "ns/s1"


class TestKubernetesStore:
    """Test cases for KubernetesStore calls."""

    def test_get_zenlock(self, kube_store, custom_api):
        custom_api.get_namespaced_custom_object.return_value = ZENLOCK

        assert kube_store.get(KIND_ZENLOCK, "ns", "zl") == ZENLOCK
        kwargs = custom_api.get_namespaced_custom_object.call_args[1]
        assert kwargs["group"] == "security.kube-zen.io"
        assert kwargs["version"] == "v1alpha1"
        assert kwargs["plural"] == "zenlocks"
        assert kwargs["namespace"] == "ns"
        assert kwargs["name"] == "zl"
        assert kwargs["_request_timeout"] == 7.0

    def test_get_secret_and_pod(self, kube_store, core_api):
        core_api.read_namespaced_secret.return_value = SECRET
        core_api.read_namespaced_pod.return_value = {"metadata": {"name": "web", "uid": "u"}}

        assert kube_store.get(KIND_SECRET, "ns", "s1") == SECRET
        assert kube_store.get(KIND_POD, "ns", "web")["metadata"]["uid"] == "u"
        core_api.read_namespaced_pod.assert_called_once_with(name="web", namespace="ns", _request_timeout=7.0)

    def test_get_maps_api_exception(self, kube_store, core_api):
        core_api.read_namespaced_pod.side_effect = api_exception(404, "NotFound", 'pods "web" not found')

        with pytest.raises(StoreError) as exc_info:
            kube_store.get(KIND_POD, "ns", "web")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert isinstance(exc_info.value.__cause__, ApiException)

    def test_update_zenlock(self, kube_store, custom_api):
        kube_store.update(KIND_ZENLOCK, ZENLOCK)
        kwargs = custom_api.replace_namespaced_custom_object.call_args[1]
        assert kwargs["body"] is ZENLOCK
        assert kwargs["name"] == "zl"

    def test_update_secret(self, kube_store, core_api):
        core_api.replace_namespaced_secret.return_value = SECRET
        kube_store.update(KIND_SECRET, SECRET)
        core_api.replace_namespaced_secret.assert_called_once_with(
            name="s1", namespace="ns", body=SECRET, _request_timeout=7.0
        )

    def test_update_status(self, kube_store, custom_api):
        kube_store.update_status(KIND_ZENLOCK, ZENLOCK)
        custom_api.replace_namespaced_custom_object_status.assert_called_once()

    def test_update_status_conflict(self, kube_store, custom_api):
        custom_api.replace_namespaced_custom_object_status.side_effect = api_exception(409, "Conflict")

        with pytest.raises(StoreError) as exc_info:
            kube_store.update_status(KIND_ZENLOCK, ZENLOCK)

        assert exc_info.value.kind is ErrorKind.CONFLICT

    def test_delete_secret(self, kube_store, core_api):
        kube_store.delete(KIND_SECRET, SECRET)
        core_api.delete_namespaced_secret.assert_called_once_with(name="s1", namespace="ns", _request_timeout=7.0)

    def test_list_all_namespaces(self, kube_store, core_api):
        core_api.list_secret_for_all_namespaces.return_value = MagicMock(items=[SECRET])

        result = kube_store.list_by_label(KIND_SECRET, None, {"zen-lock.security.kube-zen.io/zenlock-name": "zl"})

        assert result == [SECRET]
        core_api.list_secret_for_all_namespaces.assert_called_once_with(
            label_selector="zen-lock.security.kube-zen.io/zenlock-name=zl", _request_timeout=7.0
        )

    def test_list_namespaced(self, kube_store, core_api):
        core_api.list_namespaced_secret.return_value = MagicMock(items=[])

        assert kube_store.list_by_label(KIND_SECRET, "ns", {"a": "b"}) == []
        core_api.list_namespaced_secret.assert_called_once_with(
            namespace="ns", label_selector="a=b", _request_timeout=7.0
        )

    @pytest.mark.parametrize(
        "method,args",
        [
            ("get", ("ConfigMap", "ns", "x")),
            ("update", (KIND_POD, SECRET)),
            ("update_status", (KIND_SECRET, SECRET)),
            ("delete", (KIND_ZENLOCK, ZENLOCK)),
            ("list_by_label", (KIND_POD, None, {})),
        ],
    )
    def test_unsupported_kinds(self, kube_store, method, args):
        with pytest.raises(ValueError):
            getattr(kube_store, method)(*args)
