"""Paramiko channel — SFTP request/response pairs over a paramiko session."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from io import StringIO
from typing import TYPE_CHECKING, Any, TypeVar

from remote_sftp._channel import Channel
from remote_sftp._config import HostKeyPolicy
from remote_sftp._errors import (
    AlreadyExists,
    ChannelUnavailable,
    NotFound,
    PermissionDenied,
    ProtocolError,
    RemoteSFTPError,
)
from remote_sftp._models import DirectoryEntry, DirectoryPage, FileAttributes, StatusCode

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from remote_sftp._config import ConnectionConfig
    from remote_sftp._models import OpenFlags

T = TypeVar("T")

log = logging.getLogger(__name__)


# region: PEM handling

_NON_BASE64_PATTERN = re.compile(r"[^A-Za-z\d+/=]")
_PEM_SEPARATOR = "-----"


def _sanitize_pem(pem_content: str) -> str:
    """Normalize PEM line separators (secret stores often flatten newlines to blanks)."""
    parts = pem_content.split(_PEM_SEPARATOR)
    if len(parts) != 5:
        raise ValueError("Invalid PEM structure (expected 5 parts).")

    payload = parts[2]
    non_base64_chars = list(set(re.findall(_NON_BASE64_PATTERN, payload)))
    if len(non_base64_chars) != 1:
        raise ValueError(f"Unexpected PEM characters: {non_base64_chars}")

    parts[2] = payload.replace(non_base64_chars[0], "\n")
    return _PEM_SEPARATOR.join(parts)


def load_private_key(source: str, *, from_file: bool = False) -> Any:  # pragma: no cover
    """Load an RSA private key from a file path or a PEM string.

    Args:
        source: File path (if from_file=True) or PEM-encoded string.
        from_file: If True, treat source as a file path.

    Returns:
        paramiko.RSAKey
    """
    import paramiko

    if from_file:
        return paramiko.RSAKey.from_private_key_file(source)
    with StringIO(_sanitize_pem(source)) as buf:
        return paramiko.RSAKey.from_private_key(buf)


# endregion

# region: attribute conversion


def attributes_from_paramiko(attr: Any) -> FileAttributes:
    """Convert a ``paramiko.SFTPAttributes`` into :class:`FileAttributes`."""
    extended = getattr(attr, "attr", None) or {}
    return FileAttributes(
        size=attr.st_size,
        uid=attr.st_uid,
        gid=attr.st_gid,
        permissions=attr.st_mode,
        atime=attr.st_atime,
        mtime=attr.st_mtime,
        extended=tuple((str(k), str(v)) for k, v in extended.items()),
    )


def attributes_to_paramiko(attributes: FileAttributes) -> Any:
    """Build a ``paramiko.SFTPAttributes`` carrying only the fields that are set."""
    from paramiko import SFTPAttributes

    attr = SFTPAttributes()
    attr.st_size = attributes.size
    attr.st_mode = attributes.permissions
    # uid/gid and atime/mtime travel in pairs on the wire
    if attributes.uid is not None and attributes.gid is not None:
        attr.st_uid = attributes.uid
        attr.st_gid = attributes.gid
    if attributes.atime is not None and attributes.mtime is not None:
        attr.st_atime = attributes.atime
        attr.st_mtime = attributes.mtime
    return attr


# endregion


class ParamikoChannel(Channel):
    """Channel over a connected ``paramiko.SFTPClient``.

    Directory and file handles are driven with raw SFTP requests so that each
    channel call is exactly one request/response pair and handles are never
    closed behind the caller's back. Blocking paramiko calls run on a single
    worker thread, one request at a time.

    :param sftp: A connected ``paramiko.SFTPClient``.
    :param ssh: The owning ``paramiko.SSHClient``, closed with the channel.
    """

    def __init__(self, sftp: Any, *, ssh: Any = None) -> None:
        self._sftp = sftp
        self._ssh = ssh
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote-sftp-paramiko")

    @property
    def name(self) -> str:
        return "paramiko"

    @property
    def sftp(self) -> Any:
        """The underlying ``paramiko.SFTPClient``."""
        return self._sftp

    def __repr__(self) -> str:
        return f"ParamikoChannel(sftp={self._sftp!r})"

    # region: error mapping
    @contextmanager
    def _errors(self, path: str = "") -> Iterator[None]:
        """Map paramiko/OS exceptions to remote_sftp errors."""
        import paramiko

        try:
            yield
        except RemoteSFTPError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {path}", path=path, channel=self.name) from None
        except OSError as exc:
            code = getattr(exc, "errno", None)
            if code == errno.ENOENT:
                raise NotFound(f"Not found: {path}", path=path, channel=self.name) from None
            if code == errno.EACCES:
                raise PermissionDenied(f"Permission denied: {path}", path=path, channel=self.name) from None
            if code == errno.EEXIST:
                raise AlreadyExists(f"Already exists: {path}", path=path, channel=self.name) from None
            raise RemoteSFTPError(str(exc), path=path, channel=self.name) from None
        except paramiko.SFTPError as exc:
            raise ProtocolError(str(exc), path=path, channel=self.name) from None
        except paramiko.SSHException as exc:
            raise ChannelUnavailable(str(exc), path=path, channel=self.name) from None
        except EOFError as exc:
            raise ChannelUnavailable(str(exc) or "Connection closed", path=path, channel=self.name) from None

    async def _run(self, path: str, fn: Callable[[], T]) -> T:
        if self._sftp is None:
            raise ChannelUnavailable("Channel is closed", path=path or None, channel=self.name)

        def _call() -> T:
            with self._errors(path):
                return fn()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, _call)

    def _request(self, cmd: int, *args: Any) -> tuple[int, Any]:
        """One raw request; paramiko raises for error status replies."""
        return self._sftp._request(cmd, *args)  # noqa: SLF001

    # endregion

    # region: path operations
    async def realpath(self, path: str) -> list[str]:
        return await self._run(path, lambda: [self._sftp.normalize(path)])

    async def stat(self, path: str) -> FileAttributes:
        return await self._run(path, lambda: attributes_from_paramiko(self._sftp.stat(path)))

    async def mkdir(self, path: str, attributes: FileAttributes) -> None:
        from paramiko.sftp import CMD_MKDIR

        await self._run(path, lambda: self._request(CMD_MKDIR, path, attributes_to_paramiko(attributes)))

    async def rename(self, old_path: str, new_path: str) -> None:
        await self._run(old_path, lambda: self._sftp.rename(old_path, new_path))

    async def rmdir(self, path: str) -> None:
        await self._run(path, lambda: self._sftp.rmdir(path))

    async def remove(self, path: str) -> None:
        await self._run(path, lambda: self._sftp.remove(path))

    # endregion

    # region: directory handles
    async def open_dir(self, path: str) -> bytes:
        from paramiko.sftp import CMD_HANDLE, CMD_OPENDIR

        def _open() -> bytes:
            t, msg = self._request(CMD_OPENDIR, path)
            if t != CMD_HANDLE:
                raise ProtocolError("Expected handle", path=path, channel=self.name)
            return bytes(msg.get_binary())

        return await self._run(path, _open)

    async def read_dir(self, handle: bytes) -> DirectoryPage:
        from paramiko import SFTPAttributes
        from paramiko.sftp import CMD_NAME, CMD_READDIR

        def _read() -> DirectoryPage:
            try:
                t, msg = self._request(CMD_READDIR, handle)
            except EOFError:
                return DirectoryPage.end(StatusCode.EOF)
            if t != CMD_NAME:
                raise ProtocolError("Expected name response", channel=self.name)
            entries = []
            for _ in range(msg.get_int()):
                filename = msg.get_text()
                longname = msg.get_text()
                attr = SFTPAttributes._from_msg(msg, filename, longname)  # noqa: SLF001
                entries.append(
                    DirectoryEntry(filename=filename, longname=longname, attributes=attributes_from_paramiko(attr))
                )
            return DirectoryPage.batch(entries)

        return await self._run("", _read)

    # endregion

    # region: file handles
    async def open_file(self, path: str, flags: OpenFlags, attributes: FileAttributes) -> bytes:
        from paramiko.sftp import CMD_HANDLE, CMD_OPEN

        def _open() -> bytes:
            t, msg = self._request(CMD_OPEN, path, int(flags), attributes_to_paramiko(attributes))
            if t != CMD_HANDLE:
                raise ProtocolError("Expected handle", path=path, channel=self.name)
            return bytes(msg.get_binary())

        return await self._run(path, _open)

    async def read(self, handle: bytes, offset: int, length: int) -> bytes:
        from paramiko.sftp import CMD_DATA, CMD_READ, int64

        def _read() -> bytes:
            try:
                t, msg = self._request(CMD_READ, handle, int64(offset), int(length))
            except EOFError:
                return b""
            if t != CMD_DATA:
                raise ProtocolError("Expected data", channel=self.name)
            return bytes(msg.get_string())

        return await self._run("", _read)

    async def write(self, handle: bytes, offset: int, data: bytes) -> None:
        from paramiko.sftp import CMD_WRITE, int64

        await self._run("", lambda: self._request(CMD_WRITE, handle, int64(offset), data))

    async def fstat(self, handle: bytes) -> FileAttributes:
        from paramiko import SFTPAttributes
        from paramiko.sftp import CMD_ATTRS, CMD_FSTAT

        def _fstat() -> FileAttributes:
            t, msg = self._request(CMD_FSTAT, handle)
            if t != CMD_ATTRS:
                raise ProtocolError("Expected attributes", channel=self.name)
            return attributes_from_paramiko(SFTPAttributes._from_msg(msg))  # noqa: SLF001

        return await self._run("", _fstat)

    async def close_handle(self, handle: bytes) -> None:
        from paramiko.sftp import CMD_CLOSE

        await self._run("", lambda: self._request(CMD_CLOSE, handle))

    # endregion

    # region: lifecycle
    def _close_clients(self) -> None:
        """Close SFTP and SSH clients if open."""
        if self._sftp is not None:
            try:
                self._sftp.close()
            finally:
                self._sftp = None
        if self._ssh is not None:
            try:
                self._ssh.close()
            finally:
                self._ssh = None

    async def close(self) -> None:
        if self._sftp is None:
            return
        try:
            await self._run("", self._close_clients)
        finally:
            self._executor.shutdown(wait=False)

    # endregion


# region: connection setup


def _load_host_keys_from_string(ssh: Any, keys_content: str) -> None:  # pragma: no cover
    """Parse a known_hosts-formatted string into an SSHClient's host keys."""
    import tempfile

    with tempfile.NamedTemporaryFile(mode="w", suffix=".known_hosts", delete=True) as tmp:
        tmp.write(keys_content)
        tmp.flush()
        ssh.load_host_keys(tmp.name)


def _create_ssh_client(config: ConnectionConfig) -> Any:
    """Create and configure an SSHClient with host key policy."""
    import paramiko

    ssh = paramiko.SSHClient()

    resolved_host_keys = config.resolve_host_keys()
    if resolved_host_keys:  # pragma: no cover -- tested via unit test
        _load_host_keys_from_string(ssh, resolved_host_keys)
    elif config.host_key_policy in (  # pragma: no cover -- tests use AUTO_ADD
        HostKeyPolicy.STRICT,
        HostKeyPolicy.TRUST_ON_FIRST_USE,
    ):
        keys_path = config.host_keys_path or os.path.expanduser("~/.ssh/known_hosts")
        if os.path.isfile(keys_path):
            ssh.load_host_keys(keys_path)

    if config.host_key_policy == HostKeyPolicy.TRUST_ON_FIRST_USE:  # pragma: no cover
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    elif config.host_key_policy == HostKeyPolicy.AUTO_ADD:
        log.warning("AUTO_ADD host key policy -- NOT safe for production.")
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    return ssh


def _connect_blocking(config: ConnectionConfig) -> ParamikoChannel:
    """Establish SSH + SFTP with tenacity retry around the SSH handshake."""
    import paramiko
    from tenacity import (
        before_sleep_log,
        retry,
        retry_if_exception_type,
        stop_after_attempt,
        wait_exponential,
    )

    ssh = _create_ssh_client(config)
    pkey = None
    if config.private_key:  # pragma: no cover
        pkey = load_private_key(config.private_key)
    elif config.key_path:  # pragma: no cover
        pkey = load_private_key(config.key_path, from_file=True)

    @retry(
        retry=retry_if_exception_type((paramiko.SSHException, OSError, EOFError)),
        stop=stop_after_attempt(config.connect_attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
        reraise=True,
    )
    def _do_connect() -> None:
        log.info("Connecting to %s:%d as %s", config.host, config.port, config.username)
        ssh.connect(
            hostname=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            pkey=pkey,
            timeout=config.timeout,
            banner_timeout=config.timeout,
            auth_timeout=config.timeout,
            channel_timeout=config.timeout,
            **config.connect_kwargs,
        )

    try:
        _do_connect()
        sftp = ssh.open_sftp()
    except paramiko.AuthenticationException as exc:
        ssh.close()
        raise PermissionDenied(f"Authentication failed: {exc}", channel="paramiko") from None
    except (paramiko.SSHException, OSError, EOFError) as exc:
        ssh.close()
        raise ChannelUnavailable(f"Cannot connect to {config.host}:{config.port}: {exc}", channel="paramiko") from None
    log.info("SFTP connection established.")
    return ParamikoChannel(sftp, ssh=ssh)


async def connect_paramiko(config: ConnectionConfig) -> ParamikoChannel:
    """Validate ``config``, connect in a worker thread and return the channel.

    :raises ValueError: If the config is invalid.
    :raises ChannelUnavailable: If the server cannot be reached after all attempts.
    :raises PermissionDenied: If authentication is rejected.
    """
    config.validate()
    return await asyncio.to_thread(_connect_blocking, config)


# endregion
