"""Tests for operator configuration."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from zen_lock_operator.config import (
    KeyMaterialSource,
    OperatorConfig,
    load_decryptor,
    load_orphan_ttl,
    parse_duration,
)
from zen_lock_operator.constants import DEFAULT_ORPHAN_TTL_SECONDS


class TestParseDuration:
    """Test cases for parse_duration."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("90s", 90.0),
            ("10m", 600.0),
            ("1h30m", 5400.0),
            ("1.5h", 5400.0),
            ("500ms", 0.5),
            ("0", 0.0),
            ("-5s", -5.0),
            (" 15m ", 900.0),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "15", "abc", "10x", "m10", "1h 30m"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestLoadOrphanTTL:
    """Test cases for load_orphan_ttl."""

    def test_default_when_unset(self):
        assert load_orphan_ttl({}) == DEFAULT_ORPHAN_TTL_SECONDS == 900

    def test_valid_value(self):
        assert load_orphan_ttl({"ZEN_LOCK_ORPHAN_TTL": "30m"}) == 1800

    def test_invalid_value_falls_back(self, caplog):
        assert load_orphan_ttl({"ZEN_LOCK_ORPHAN_TTL": "soon"}) == DEFAULT_ORPHAN_TTL_SECONDS
        assert "Invalid ZEN_LOCK_ORPHAN_TTL" in caplog.text

    def test_negative_value_falls_back(self):
        assert load_orphan_ttl({"ZEN_LOCK_ORPHAN_TTL": "-1m"}) == DEFAULT_ORPHAN_TTL_SECONDS


class TestKeyMaterialSource:
    def test_reads_and_strips(self):
        source = KeyMaterialSource(environ={"ZEN_LOCK_PRIVATE_KEY": "  AGE-SECRET-KEY-1X\n"})
        assert source.read() == "AGE-SECRET-KEY-1X"

    def test_missing_is_empty(self):
        assert KeyMaterialSource(environ={}).read() == ""

    def test_reads_current_value(self):
        """Test that every read sees the latest value."""
        environ = {"ZEN_LOCK_PRIVATE_KEY": "old"}
        source = KeyMaterialSource(environ=environ)
        environ["ZEN_LOCK_PRIVATE_KEY"] = "new"
        assert source.read() == "new"

    def test_os_environ(self, monkeypatch):
        monkeypatch.setenv("ZEN_LOCK_PRIVATE_KEY", "from-env")
        assert KeyMaterialSource().read() == "from-env"


class FakeDecryptor:
    def decrypt_map(self, encrypted_data, identity):
        return {}


INSTANCE = FakeDecryptor()


def make_decryptor():
    return INSTANCE


class TestLoadDecryptor:
    """Test cases for load_decryptor."""

    def test_class_is_instantiated(self):
        decryptor = load_decryptor(f"{__name__}:FakeDecryptor")
        assert isinstance(decryptor, FakeDecryptor)

    def test_instance_is_returned(self):
        assert load_decryptor(f"{__name__}:INSTANCE") is INSTANCE

    def test_factory_is_called(self):
        assert load_decryptor(f"{__name__}:make_decryptor") is INSTANCE

    @pytest.mark.parametrize("spec", ["no_colon", ":attr", "module:"])
    def test_bad_spec(self, spec):
        with pytest.raises(ValueError):
            load_decryptor(spec)

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_decryptor("zen_lock_operator.does_not_exist:Thing")


class TestOperatorConfig:
    """Test cases for OperatorConfig.from_env."""

    def test_defaults(self):
        config = OperatorConfig.from_env({})
        assert config.orphan_ttl == 900
        assert config.metrics_port == 8080
        assert config.request_timeout == 30.0
        assert config.decryptor_path == ""
        assert config.enable_controller is True
        assert config.key_source.read() == ""

    def test_from_env(self):
        environ = {
            "ZEN_LOCK_ORPHAN_TTL": "2m",
            "METRICS_PORT": "9100",
            "K8S_REQUEST_TIMEOUT_SECONDS": "5",
            "ZEN_LOCK_DECRYPTOR": "pkg.mod:Decryptor",
            "ENABLE_CONTROLLER": "false",
            "ZEN_LOCK_PRIVATE_KEY": "AGE-SECRET-KEY-1X",
        }
        config = OperatorConfig.from_env(environ)

        assert config.orphan_ttl == 120
        assert config.metrics_port == 9100
        assert config.request_timeout == 5.0
        assert config.decryptor_path == "pkg.mod:Decryptor"
        assert config.enable_controller is False
        assert config.key_source.read() == "AGE-SECRET-KEY-1X"

    def test_build_decryptor_without_path(self):
        loader = Mock()
        assert OperatorConfig().build_decryptor(loader) is None
        loader.assert_not_called()

    def test_build_decryptor_with_path(self):
        loader = Mock(return_value=INSTANCE)
        config = OperatorConfig(decryptor_path="pkg.mod:Decryptor")

        assert config.build_decryptor(loader) is INSTANCE
        loader.assert_called_once_with("pkg.mod:Decryptor")
