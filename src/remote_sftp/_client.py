"""SFTPClient — the primary user-facing facade."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_sftp._context import ExecutorContext, LoopContext, complete
from remote_sftp._enumerator import list_directory
from remote_sftp._errors import InvalidPath
from remote_sftp._models import FileAttributes, OpenFlags
from remote_sftp._resolver import resolve_path
from remote_sftp._result import OperationResult
from remote_sftp._session import open_file, with_file

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType
    from typing import TypeVar

    from remote_sftp._cancel import CancellationToken
    from remote_sftp._channel import Channel
    from remote_sftp._config import ConnectionConfig
    from remote_sftp._context import ExecutionContext
    from remote_sftp._models import DirectoryEntry
    from remote_sftp._path import CanonicalPath
    from remote_sftp._session import FileSession
    from remote_sftp._types import Completion, Release

    T = TypeVar("T")

log = logging.getLogger(__name__)


class SFTPClient:
    """Asynchronous client over an established protocol channel.

    Every operation is a coroutine. Without ``completion`` it returns its
    value or raises. With ``completion``, the outcome is delivered to it
    exactly once as an :class:`~remote_sftp.OperationResult` on ``context``
    (or the client default) and the coroutine returns ``None``.

    :param channel: Connected channel to issue requests on.
    :param context: Default context for completions. Defaults to the running
        event loop.
    :param session_context: Default context for sessions opened with
        :meth:`with_file`. Defaults to a private background thread.
    """

    def __init__(
        self,
        channel: Channel,
        *,
        context: ExecutionContext | None = None,
        session_context: ExecutionContext | None = None,
    ) -> None:
        self._channel = channel
        self._context = context or LoopContext()
        self._owned_session_context: ExecutorContext | None = None
        if session_context is None:
            session_context = self._owned_session_context = ExecutorContext()
        self._session_context = session_context

    @classmethod
    async def connect(cls, config: ConnectionConfig, **kwargs: ExecutionContext | None) -> SFTPClient:
        """Connect over SSH with paramiko and wrap the channel in a client.

        Requires the ``sftp`` extra (paramiko, tenacity).
        """
        from remote_sftp.channels._paramiko import connect_paramiko

        channel = await connect_paramiko(config)
        return cls(channel, **kwargs)

    def __repr__(self) -> str:
        return f"SFTPClient(channel={self._channel.name!r})"

    async def __aenter__(self) -> SFTPClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def channel(self) -> Channel:
        return self._channel

    def _deliver(
        self,
        awaitable: Awaitable[T],
        completion: Completion | None,
        context: ExecutionContext | None,
    ) -> Awaitable[T | None]:
        return complete(awaitable, completion, context or self._context)

    @staticmethod
    def _require_path(path: str) -> str:
        """Reject paths the remote side cannot interpret."""
        if not path:
            raise InvalidPath("Path must not be empty", path=path)
        if "\0" in path:
            raise InvalidPath("Path contains null byte", path=path)
        return path

    @classmethod
    def _listing_path(cls, path: str) -> str:
        """Empty means the remote working directory."""
        return cls._require_path(path or ".")

    async def resolve_path(
        self,
        path: str,
        *,
        token: CancellationToken | None = None,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> CanonicalPath | None:
        """Return the canonical absolute form of ``path``."""

        async def _resolve() -> CanonicalPath:
            return await resolve_path(self._channel, self._listing_path(path), token=token)

        return await self._deliver(_resolve(), completion, context)

    async def list_directory(
        self,
        path: str,
        *,
        token: CancellationToken | None = None,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> list[DirectoryEntry] | None:
        """List every entry of a directory, in server order.

        The path is resolved first; all pages are read before anything is
        returned.

        :raises NotFound: If the directory does not exist.
        :raises OperationCancelled: If ``token`` fires before the listing ends.
        """

        async def _list() -> list[DirectoryEntry]:
            return await list_directory(self._channel, self._listing_path(path), token=token)

        return await self._deliver(_list(), completion, context)

    async def get_attributes(
        self,
        path: str,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> FileAttributes | None:
        """Get the attributes of a file or directory.

        :raises NotFound: If the path does not exist.
        """

        async def _stat() -> FileAttributes:
            return await self._channel.stat(self._require_path(path))

        return await self._deliver(_stat(), completion, context)

    async def open_file(
        self,
        path: str,
        flags: OpenFlags = OpenFlags.READ,
        attributes: FileAttributes = FileAttributes.NONE,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> FileSession | None:
        """Open a file. The caller owns the session and must close it.

        The session delivers its own completions on ``context`` (or the
        client default).
        """
        target = context or self._context

        async def _open() -> FileSession:
            return await open_file(self._channel, self._require_path(path), flags, attributes, context=target)

        return await self._deliver(_open(), completion, target)

    async def with_file(
        self,
        path: str,
        flags: OpenFlags,
        attributes: FileAttributes = FileAttributes.NONE,
        *,
        body: Callable[[FileSession, Release], object],
        completion: Completion,
        context: ExecutionContext | None = None,
    ) -> None:
        """Open a file and run ``body(session, release)``.

        The file is closed only when ``body`` calls ``release()``; the close
        outcome (or the open failure) is delivered to ``completion``. Session
        work runs on ``context``, by default the client's background session
        context.
        """
        target = context or self._session_context
        try:
            checked = self._require_path(path)
        except InvalidPath as exc:
            target.dispatch(completion, OperationResult.failure(exc))
            return
        await with_file(self._channel, checked, flags, attributes, body, context=target, completion=completion)

    async def create_directory(
        self,
        path: str,
        attributes: FileAttributes = FileAttributes.NONE,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """Create a directory.

        :raises AlreadyExists: If ``path`` already exists.
        """

        async def _mkdir() -> None:
            await self._channel.mkdir(self._require_path(path), attributes)

        await self._deliver(_mkdir(), completion, context)

    async def move_item(
        self,
        src: str,
        dst: str,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """Rename ``src`` to ``dst``.

        :raises NotFound: If ``src`` does not exist.
        """

        async def _rename() -> None:
            await self._channel.rename(self._require_path(src), self._require_path(dst))

        await self._deliver(_rename(), completion, context)

    async def remove_directory(
        self,
        path: str,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """Remove an empty directory.

        :raises NotFound: If the directory does not exist.
        """

        async def _rmdir() -> None:
            await self._channel.rmdir(self._require_path(path))

        await self._deliver(_rmdir(), completion, context)

    async def remove_file(
        self,
        path: str,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """Remove a file.

        :raises NotFound: If the file does not exist.
        """

        async def _remove() -> None:
            await self._channel.remove(self._require_path(path))

        await self._deliver(_remove(), completion, context)

    async def close(
        self,
        *,
        completion: Completion | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """Close the channel, best-effort. Never raises; ``completion`` always fires."""

        async def _close() -> None:
            try:
                await self._channel.close()
            except Exception:
                log.warning("Closing channel %r failed", self._channel.name, exc_info=True)
            if self._owned_session_context is not None:
                self._owned_session_context.close(wait=False)

        await self._deliver(_close(), completion, context)
