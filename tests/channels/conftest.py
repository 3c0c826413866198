"""Channel test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import dataclasses
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from remote_sftp.channels import LocalChannel

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_sftp._channel import Channel


def _sftp_available() -> bool:
    try:
        import paramiko  # noqa: F401
        import tenacity  # noqa: F401

        return True
    except ImportError:
        return False


@dataclasses.dataclass
class ServedTree:
    """A channel plus the local directory that backs ``base`` on the remote side."""

    channel: Channel
    base: str
    native: Path

    def remote(self, *names: str) -> str:
        return "/".join([self.base.rstrip("/"), *names]) or "/"


@pytest.fixture(scope="session")
def sftp_server() -> Iterator[tuple[int, str] | None]:
    """Start an in-process SFTP server for the test session.

    Yields ``(port, served_root)``.
    """
    if not _sftp_available():
        yield None
        return

    from tests.channels.sftp_server import start_sftp_server, stop_sftp_server

    tmpdir = tempfile.mkdtemp(prefix="sftp_test_")
    thread, port, _host_key, stop_event, server_socket = start_sftp_server(root=tmpdir, host="127.0.0.1")

    yield port, tmpdir

    stop_sftp_server(thread, stop_event, server_socket)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def paramiko_tree(sftp_server: tuple[int, str] | None) -> Iterator[ServedTree]:
    """A ParamikoChannel connected to the in-process server, scoped to a fresh directory."""
    if sftp_server is None:
        pytest.skip("paramiko/tenacity not installed")
    import paramiko

    from remote_sftp.channels._paramiko import ParamikoChannel

    port, served_root = sftp_server
    name = f"test_{uuid.uuid4().hex[:8]}"
    native = Path(served_root).resolve() / name
    native.mkdir()

    ssh = paramiko.SSHClient()
    ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    ssh.connect(
        hostname="127.0.0.1",
        port=port,
        username="testuser",
        password="testpass",
        allow_agent=False,
        look_for_keys=False,
    )
    channel = ParamikoChannel(ssh.open_sftp(), ssh=ssh)
    yield ServedTree(channel, f"/{name}", native)
    ssh.close()


@pytest.fixture
def local_tree(tmp_path: Path) -> ServedTree:
    """A LocalChannel serving a temp directory; ``base`` is a subdirectory of its root."""
    native = tmp_path / "base"
    native.mkdir()
    return ServedTree(LocalChannel(str(tmp_path), page_size=2), "/base", native.resolve())


@pytest.fixture(
    params=[
        "local",
        pytest.param("paramiko", marks=pytest.mark.skipif(not _sftp_available(), reason="paramiko not installed")),
    ]
)
def tree(request: pytest.FixtureRequest) -> ServedTree:
    """Parameterized channel fixture. Add new channels here."""
    fixture = "local_tree" if request.param == "local" else "paramiko_tree"
    return request.getfixturevalue(fixture)  # type: ignore[no-any-return]
