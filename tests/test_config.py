"""
Tests for BridgeConfig.
"""

import errno

import pytest

from posix_bridge.config import BridgeConfig, parse_errno


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        config = BridgeConfig()
        assert config.simulate is False
        assert config.libc_path is None
        assert config.registry_capacity == 256
        assert config.not_found_code == errno.ENOENT
        assert config.debug is False

    def test_from_empty_env(self):
        assert BridgeConfig.from_env({}) == BridgeConfig()

    @pytest.mark.parametrize("kwargs", [
        {"registry_capacity": 0},
        {"not_found_code": 0},
        {"not_found_code": -2},
    ])
    def test_validation(self, kwargs):
        with pytest.raises(ValueError):
            BridgeConfig(**kwargs)


class TestFromEnv:
    """Tests for environment parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), ("YES", True), ("on", True),
        ("0", False), ("false", False), ("no", False), ("", False),
    ])
    def test_simulate_values(self, raw, expected):
        assert BridgeConfig.from_env({"POSIX_BRIDGE_SIMULATE": raw}).simulate is expected

    def test_bad_boolean(self):
        with pytest.raises(ValueError, match="POSIX_BRIDGE_DEBUG"):
            BridgeConfig.from_env({"POSIX_BRIDGE_DEBUG": "maybe"})

    def test_libc_path(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_LIBC_PATH": "/opt/libc.so"})
        assert config.libc_path == "/opt/libc.so"

    def test_libc_path_fallback_variable(self):
        assert BridgeConfig.from_env({"LIBC_PATH": "/x/libc.so"}).libc_path == "/x/libc.so"

    def test_prefixed_libc_path_wins(self):
        config = BridgeConfig.from_env({
            "POSIX_BRIDGE_LIBC_PATH": "/a/libc.so",
            "LIBC_PATH": "/b/libc.so",
        })
        assert config.libc_path == "/a/libc.so"

    def test_registry_capacity(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_REGISTRY_CAPACITY": "16"})
        assert config.registry_capacity == 16

    def test_bad_registry_capacity(self):
        with pytest.raises(ValueError, match="REGISTRY_CAPACITY"):
            BridgeConfig.from_env({"POSIX_BRIDGE_REGISTRY_CAPACITY": "lots"})

    def test_not_found_code_by_name(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_NOT_FOUND_CODE": "esrch"})
        assert config.not_found_code == errno.ESRCH

    def test_not_found_code_by_number(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_NOT_FOUND_CODE": "3"})
        assert config.not_found_code == 3

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("POSIX_BRIDGE_SIMULATE", "1")
        assert BridgeConfig.from_env().simulate is True


class TestOverrides:
    """Tests for keyword overrides."""

    def test_override_wins(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_SIMULATE": "1"}, simulate=False)
        assert config.simulate is False

    def test_none_is_ignored(self):
        config = BridgeConfig.from_env({"POSIX_BRIDGE_LIBC_PATH": "/a"}, libc_path=None)
        assert config.libc_path == "/a"

    def test_unknown_override(self):
        with pytest.raises(ValueError, match="Unknown configuration option"):
            BridgeConfig.from_env({}, verbose=True)


class TestParseErrno:
    """Tests for parse_errno."""

    def test_names(self):
        assert parse_errno("ENOENT") == errno.ENOENT
        assert parse_errno(" eacces ") == errno.EACCES

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            parse_errno("ENOTANERRNO")

    def test_non_errno_attribute(self):
        with pytest.raises(ValueError):
            parse_errno("errorcode")
