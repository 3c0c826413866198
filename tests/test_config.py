"""Tests for connection configuration."""

from __future__ import annotations

import dataclasses

import pytest

from remote_sftp._config import ConnectionConfig, HostKeyPolicy


class TestConnectionConfig:
    def test_defaults(self) -> None:
        cfg = ConnectionConfig(host="example.com")
        assert cfg.port == 22
        assert cfg.username is None
        assert cfg.host_key_policy is HostKeyPolicy.STRICT
        assert cfg.timeout == 10
        assert cfg.connect_attempts == 3
        assert cfg.connect_kwargs == {}

    def test_frozen(self) -> None:
        cfg = ConnectionConfig(host="example.com")
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.host = "other"  # type: ignore[misc]

    def test_secrets_hidden_from_repr(self) -> None:
        cfg = ConnectionConfig(
            host="h", password="hunter2", private_key="-----BEGIN KEY-----", known_host_keys="h ssh-rsa AAA"
        )
        text = repr(cfg)
        assert "hunter2" not in text
        assert "BEGIN KEY" not in text
        assert "ssh-rsa" not in text


class TestValidation:
    def test_valid(self) -> None:
        ConnectionConfig(host="h", port=2222).validate()

    @pytest.mark.parametrize("host", ["", "   "])
    def test_empty_host(self, host: str) -> None:
        with pytest.raises(ValueError, match="host"):
            ConnectionConfig(host=host).validate()

    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_port_range(self, port: int) -> None:
        with pytest.raises(ValueError, match="port"):
            ConnectionConfig(host="h", port=port).validate()

    def test_timeout_positive(self) -> None:
        with pytest.raises(ValueError, match="timeout"):
            ConnectionConfig(host="h", timeout=0).validate()

    def test_attempts_at_least_one(self) -> None:
        with pytest.raises(ValueError, match="connect_attempts"):
            ConnectionConfig(host="h", connect_attempts=0).validate()


class TestHostKeys:
    def test_config_value_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SFTP_KNOWN_HOST_KEYS", "from-env")
        cfg = ConnectionConfig(host="h", known_host_keys="from-config")
        assert cfg.resolve_host_keys() == "from-config"

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SFTP_KNOWN_HOST_KEYS", "from-env")
        assert ConnectionConfig(host="h").resolve_host_keys() == "from-env"

    def test_none_when_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SFTP_KNOWN_HOST_KEYS", raising=False)
        assert ConnectionConfig(host="h").resolve_host_keys() is None


class TestFromDict:
    def test_minimal(self) -> None:
        cfg = ConnectionConfig.from_dict({"host": "sftp.example.com"})
        assert cfg == ConnectionConfig(host="sftp.example.com")

    def test_full(self) -> None:
        cfg = ConnectionConfig.from_dict(
            {
                "host": "h",
                "port": "2222",
                "username": "deploy",
                "password": "pw",
                "host_key_policy": "tofu",
                "timeout": 5,
                "connect_attempts": 1,
                "connect_kwargs": {"allow_agent": False},
            }
        )
        assert cfg.port == 2222
        assert cfg.username == "deploy"
        assert cfg.password == "pw"
        assert cfg.host_key_policy is HostKeyPolicy.TRUST_ON_FIRST_USE
        assert cfg.timeout == 5
        assert cfg.connect_attempts == 1
        assert cfg.connect_kwargs == {"allow_agent": False}

    def test_missing_host(self) -> None:
        with pytest.raises(ValueError, match="host"):
            ConnectionConfig.from_dict({"port": 22})

    def test_bad_connect_kwargs(self) -> None:
        with pytest.raises(TypeError, match="connect_kwargs"):
            ConnectionConfig.from_dict({"host": "h", "connect_kwargs": ["x"]})

    def test_unknown_policy(self) -> None:
        with pytest.raises(ValueError):
            ConnectionConfig.from_dict({"host": "h", "host_key_policy": "yolo"})

    def test_invalid_values_are_validated(self) -> None:
        with pytest.raises(ValueError, match="port"):
            ConnectionConfig.from_dict({"host": "h", "port": 70000})
