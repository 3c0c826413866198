"""In-process SFTP server for testing, backed by a local temp directory.

Uses paramiko's ServerInterface + SFTPServerInterface to run a real SFTP server
in a background thread. Accepts all authentication for test convenience.
Canonicalization follows symlinks and stays inside the served root, and
rename refuses to overwrite, as SFTP v3 servers do.
"""

from __future__ import annotations

import contextlib
import os
import socket
import threading

import paramiko
from paramiko import (
    AUTH_SUCCESSFUL,
    OPEN_SUCCEEDED,
    RSAKey,
    ServerInterface,
    SFTPAttributes,
    SFTPHandle,
    SFTPServer,
    SFTPServerInterface,
    Transport,
)

# ---------------------------------------------------------------------------
# SSH server -- accepts all auth
# ---------------------------------------------------------------------------


class AcceptAllServer(ServerInterface):
    """Minimal SSH server that accepts all authentication."""

    def check_auth_password(self, username: str, password: str) -> int:
        return AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        return AUTH_SUCCESSFUL

    def check_channel_request(self, kind: str, chanid: int) -> int:
        return OPEN_SUCCEEDED


# ---------------------------------------------------------------------------
# SFTP handle -- wraps a real file descriptor
# ---------------------------------------------------------------------------


class LocalFileHandle(SFTPHandle):
    """SFTP handle over a real file on the local filesystem."""

    def stat(self) -> SFTPAttributes:
        try:
            return SFTPAttributes.from_stat(os.fstat(self.readfile.fileno()))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[return-value]

    def chattr(self, attr: SFTPAttributes) -> int:
        return paramiko.SFTP_OK


# ---------------------------------------------------------------------------
# SFTP server interface -- maps operations to local filesystem
# ---------------------------------------------------------------------------


class LocalTreeSFTPServer(SFTPServerInterface):
    """SFTP server backed by a local directory tree rooted at ``ROOT``."""

    ROOT: str = ""  # set by start_sftp_server before accepting connections

    def _local(self, path: str) -> str:
        """Map an SFTP path to the local filesystem; relative paths start at the root."""
        posix = os.path.normpath("/" + path).lstrip("/")
        return os.path.join(self.ROOT, posix) if posix else self.ROOT

    def canonicalize(self, path: str) -> str:
        resolved = os.path.realpath(self._local(path))
        rel = os.path.relpath(resolved, self.ROOT)
        if rel == "." or rel.startswith(".."):
            return "/"
        return "/" + rel.replace(os.sep, "/")

    def list_folder(self, path: str) -> list[SFTPAttributes] | int:
        local = self._local(path)
        try:
            entries = []
            for name in sorted(os.listdir(local)):
                attr = SFTPAttributes.from_stat(os.lstat(os.path.join(local, name)))
                attr.filename = name
                entries.append(attr)
            return entries
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def stat(self, path: str) -> SFTPAttributes | int:
        try:
            return SFTPAttributes.from_stat(os.stat(self._local(path)))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def lstat(self, path: str) -> SFTPAttributes | int:
        try:
            return SFTPAttributes.from_stat(os.lstat(self._local(path)))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def open(self, path: str, flags: int, attr: SFTPAttributes) -> SFTPHandle | int:
        local = self._local(path)
        mode = attr.st_mode & 0o7777 if attr is not None and attr.st_mode is not None else 0o644
        try:
            fd = os.open(local, flags, mode)
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

        if flags & os.O_WRONLY:
            fmode = "ab" if flags & os.O_APPEND else "wb"
        elif flags & os.O_RDWR:
            fmode = "a+b" if flags & os.O_APPEND else "r+b"
        else:
            fmode = "rb"
        fobj = os.fdopen(fd, fmode)
        handle = LocalFileHandle(flags)
        handle.filename = local
        handle.readfile = fobj  # type: ignore[assignment]
        handle.writefile = fobj  # type: ignore[assignment]
        return handle

    def remove(self, path: str) -> int:
        try:
            os.remove(self._local(path))
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def rename(self, oldpath: str, newpath: str) -> int:
        old = self._local(oldpath)
        new = self._local(newpath)
        if not os.path.lexists(old):
            return paramiko.SFTP_NO_SUCH_FILE
        if os.path.lexists(new):
            return paramiko.SFTP_FAILURE
        try:
            os.rename(old, new)
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def mkdir(self, path: str, attr: SFTPAttributes) -> int:
        mode = attr.st_mode & 0o7777 if attr is not None and attr.st_mode is not None else 0o755
        try:
            os.mkdir(self._local(path), mode)
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def rmdir(self, path: str) -> int:
        try:
            os.rmdir(self._local(path))
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def chattr(self, path: str, attr: SFTPAttributes) -> int:
        return paramiko.SFTP_OK

    def readlink(self, path: str) -> str | int:
        try:
            return os.readlink(self._local(path))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def symlink(self, target_path: str, path: str) -> int:
        return paramiko.SFTP_OP_UNSUPPORTED


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def _accept_connections(
    server_socket: socket.socket,
    host_key: RSAKey,
    root: str,
    stop_event: threading.Event,
) -> None:
    """Accept SSH connections in a loop until stop_event is set."""
    server_socket.settimeout(0.5)
    LocalTreeSFTPServer.ROOT = root

    while not stop_event.is_set():
        try:
            conn, _addr = server_socket.accept()
        except TimeoutError:
            continue
        except OSError:
            break

        transport = Transport(conn)
        transport.add_server_key(host_key)
        transport.set_subsystem_handler("sftp", SFTPServer, LocalTreeSFTPServer)

        try:
            transport.start_server(server=AcceptAllServer())
        except Exception:
            transport.close()
            continue


def start_sftp_server(
    root: str,
    host: str = "127.0.0.1",
    port: int = 0,
) -> tuple[threading.Thread, int, RSAKey, threading.Event, socket.socket]:
    """Start an in-process SFTP server in a background thread.

    Args:
        root: Local directory to serve as the SFTP root.
        host: Bind address (default: localhost).
        port: Bind port (default: 0 = OS-assigned free port).

    Returns:
        (thread, actual_port, host_key, stop_event, server_socket)
    """
    host_key = RSAKey.generate(2048)

    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server_socket.bind((host, port))
    server_socket.listen(5)
    actual_port = server_socket.getsockname()[1]

    stop_event = threading.Event()

    thread = threading.Thread(
        target=_accept_connections,
        args=(server_socket, host_key, os.path.realpath(root), stop_event),
        daemon=True,
    )
    thread.start()

    return thread, actual_port, host_key, stop_event, server_socket


def stop_sftp_server(
    thread: threading.Thread,
    stop_event: threading.Event,
    server_socket: socket.socket,
) -> None:
    """Stop the SFTP server thread and clean up resources."""
    stop_event.set()
    with contextlib.suppress(OSError):
        server_socket.close()
    thread.join(timeout=5)
