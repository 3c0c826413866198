"""Connection configuration — immutable data describing an SFTP endpoint."""

from __future__ import annotations

import dataclasses
import os
from enum import Enum
from typing import Any, Optional

_HOST_KEYS_ENV = "SFTP_KNOWN_HOST_KEYS"


class HostKeyPolicy(Enum):
    """Controls how unknown remote host keys are handled.

    :cvar STRICT: Reject unknown hosts (production default).
    :cvar TRUST_ON_FIRST_USE: Save on first connect, verify after.
    :cvar AUTO_ADD: Accept any key (dev/testing ONLY).
    """

    STRICT = "strict"
    TRUST_ON_FIRST_USE = "tofu"
    AUTO_ADD = "auto"


@dataclasses.dataclass(frozen=True)
class ConnectionConfig:
    """Describes how to reach and authenticate against an SFTP server.

    :param host: Server hostname (required, non-empty).
    :param port: SSH port.
    :param username: SSH username.
    :param password: SSH password.
    :param key_path: Path to a private key file for key-based auth.
    :param private_key: PEM-encoded private key (e.g. from a secret store).
    :param host_key_policy: Host key verification policy.
    :param known_host_keys: Known hosts string (code-level override).
    :param host_keys_path: Path to known_hosts file (default: ``~/.ssh/known_hosts``).
    :param timeout: Connection, banner and auth timeout in seconds.
    :param connect_attempts: Attempts made to establish the SSH connection.
    :param connect_kwargs: Extra kwargs passed to ``SSHClient.connect()``.
    """

    host: str
    port: int = 22
    username: Optional[str] = None
    password: Optional[str] = dataclasses.field(default=None, repr=False)
    key_path: Optional[str] = None
    private_key: Optional[str] = dataclasses.field(default=None, repr=False)
    host_key_policy: HostKeyPolicy = HostKeyPolicy.STRICT
    known_host_keys: Optional[str] = dataclasses.field(default=None, repr=False)
    host_keys_path: Optional[str] = None
    timeout: int = 10
    connect_attempts: int = 3
    connect_kwargs: dict[str, Any] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Check field values.

        :raises ValueError: If a field is out of range.
        """
        if not self.host or not self.host.strip():
            raise ValueError("host must be a non-empty string")
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.connect_attempts < 1:
            raise ValueError(f"connect_attempts must be at least 1, got {self.connect_attempts}")

    def resolve_host_keys(self) -> str | None:
        """Resolve known host keys: code/config value > environment."""
        if self.known_host_keys:
            return self.known_host_keys
        if val_env := os.environ.get(_HOST_KEYS_ENV):
            return val_env
        return None

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ConnectionConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        :param data: Dict with at least a ``host`` key. ``host_key_policy``
            may be given by value (``"strict"``, ``"tofu"``, ``"auto"``).
        :raises TypeError: If a nested value has the wrong type.
        :raises ValueError: If a value is invalid.
        """
        if "host" not in data:
            raise ValueError("Connection config requires 'host'")
        raw_kwargs = data.get("connect_kwargs", {})
        if not isinstance(raw_kwargs, dict):
            msg = "Expected 'connect_kwargs' to be a dict"
            raise TypeError(msg)

        def _opt_str(key: str) -> str | None:
            val = data.get(key)
            return None if val is None else str(val)

        config = cls(
            host=str(data["host"]),
            port=int(data.get("port", 22)),  # type: ignore[call-overload]
            username=_opt_str("username"),
            password=_opt_str("password"),
            key_path=_opt_str("key_path"),
            private_key=_opt_str("private_key"),
            host_key_policy=HostKeyPolicy(str(data.get("host_key_policy", HostKeyPolicy.STRICT.value))),
            known_host_keys=_opt_str("known_host_keys"),
            host_keys_path=_opt_str("host_keys_path"),
            timeout=int(data.get("timeout", 10)),  # type: ignore[call-overload]
            connect_attempts=int(data.get("connect_attempts", 3)),  # type: ignore[call-overload]
            connect_kwargs=dict(raw_kwargs),
        )
        config.validate()
        return config
