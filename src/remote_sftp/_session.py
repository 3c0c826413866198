"""File sessions — open remote files with caller-driven, single-shot release."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from remote_sftp._context import complete
from remote_sftp._errors import OperationCancelled
from remote_sftp._handle import HandleKind, RemoteHandle, open_guarded
from remote_sftp._models import FileAttributes, OpenFlags
from remote_sftp._result import OperationResult

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from remote_sftp._channel import Channel
    from remote_sftp._context import ExecutionContext
    from remote_sftp._types import Completion, Release

log = logging.getLogger(__name__)

# Matches the SFTP max read length most servers accept
_CHUNK_SIZE = 32768

# Close tasks started by late release() calls
_background: set[asyncio.Task[None]] = set()


class FileSession:
    """An open remote file owned by the caller until :meth:`close`.

    Reads and writes without an explicit offset continue from the session's
    position. Every operation accepts an optional ``completion`` delivered on
    the session's own execution context.

    :param channel: Channel the handle belongs to.
    :param path: Path the file was opened against.
    :param handle: The open file handle.
    :param context: Execution context for this session's completions.
    """

    def __init__(self, channel: Channel, path: str, handle: RemoteHandle, context: ExecutionContext) -> None:
        self._channel = channel
        self._path = path
        self._handle = handle
        self._context = context
        self._position = 0

    def __repr__(self) -> str:
        return f"FileSession(path={self._path!r}, state={self._handle.state.value!r})"

    @property
    def path(self) -> str:
        return self._path

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def closed(self) -> bool:
        return not self._handle.is_open

    @property
    def position(self) -> int:
        return self._position

    def seek(self, offset: int) -> None:
        if offset < 0:
            raise ValueError("offset must be non-negative")
        self._position = offset

    async def _read(self, length: int, offset: int | None) -> bytes:
        start = self._position if offset is None else offset
        data = await self._channel.read(self._handle.token, start, length)
        if offset is None:
            self._position = start + len(data)
        return data

    async def read(
        self,
        length: int = _CHUNK_SIZE,
        offset: int | None = None,
        *,
        completion: Completion | None = None,
    ) -> bytes | None:
        """Read up to ``length`` bytes; ``b""`` means end of file.

        :raises HandleClosed: If the session is closed.
        """
        return await complete(self._read(length, offset), completion, self._context)

    async def _read_all(self) -> bytes:
        chunks: list[bytes] = []
        offset = 0
        while True:
            chunk = await self._channel.read(self._handle.token, offset, _CHUNK_SIZE)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)
            offset += len(chunk)

    async def read_all(self, *, completion: Completion | None = None) -> bytes | None:
        """Read the whole file from offset 0, in chunks."""
        return await complete(self._read_all(), completion, self._context)

    async def _write(self, data: bytes, offset: int | None) -> None:
        start = self._position if offset is None else offset
        view = memoryview(data)
        for pos in range(0, len(view), _CHUNK_SIZE):
            await self._channel.write(self._handle.token, start + pos, bytes(view[pos : pos + _CHUNK_SIZE]))
        if offset is None:
            self._position = start + len(data)

    async def write(self, data: bytes, offset: int | None = None, *, completion: Completion | None = None) -> None:
        """Write ``data``, split into protocol-sized chunks.

        :raises HandleClosed: If the session is closed.
        """
        await complete(self._write(data, offset), completion, self._context)

    async def get_attributes(self, *, completion: Completion | None = None) -> FileAttributes | None:
        """Return the attributes of the open file."""

        async def _fstat() -> FileAttributes:
            return await self._channel.fstat(self._handle.token)

        return await complete(_fstat(), completion, self._context)

    async def _close(self) -> None:
        await self._handle.release(self._channel)

    async def close(self, *, completion: Completion | None = None) -> None:
        """Release the remote handle. A second close issues no request."""
        await complete(self._close(), completion, self._context)

    async def __aenter__(self) -> FileSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


async def open_file(
    channel: Channel,
    path: str,
    flags: OpenFlags = OpenFlags.READ,
    attributes: FileAttributes = FileAttributes.NONE,
    *,
    context: ExecutionContext,
) -> FileSession:
    """Open ``path`` and wrap the handle in a :class:`FileSession`."""
    handle = await open_guarded(channel.open_file(path, flags, attributes), HandleKind.FILE, path, channel)
    log.debug("Opened file handle for %s (flags=%r)", path, flags)
    return FileSession(channel, path, handle, context)


async def _close_unreleased(session: FileSession) -> None:
    """Close a session whose body ended before calling ``release``."""
    closing = asyncio.ensure_future(session.close())
    try:
        await asyncio.shield(closing)
    except Exception:
        log.warning("Failed to close %s after body failure", session.path, exc_info=True)


async def with_file(
    channel: Channel,
    path: str,
    flags: OpenFlags,
    attributes: FileAttributes,
    body: Callable[[FileSession, Release], object],
    *,
    context: ExecutionContext,
    completion: Completion,
) -> None:
    """Open a session, hand it to ``body`` and close it when ``body`` says so.

    ``body(session, release)`` runs once the file is open; it may be a plain
    function or a coroutine function. The handle stays open until
    ``release()`` is called, from any thread, possibly long after this
    coroutine returned. The close outcome is then delivered to
    ``completion`` on ``context``. ``release`` is single-shot.

    If the open fails, ``body`` never runs and the failure goes to
    ``completion``. If ``body`` raises before releasing, the session is
    closed and the body's exception is delivered instead. Cancelling the
    task before ``release()`` closes the session, delivers
    :class:`OperationCancelled` and re-raises; after ``release()`` the close
    still runs to completion and delivers its own outcome.
    """
    try:
        session = await open_file(channel, path, flags, attributes, context=context)
    except asyncio.CancelledError:
        context.dispatch(completion, OperationResult.failure(OperationCancelled("Open was cancelled", path=path)))
        raise
    except Exception as exc:
        context.dispatch(completion, OperationResult.failure(exc))
        return

    loop = asyncio.get_running_loop()
    released = False
    close_task: asyncio.Task[None] | None = None

    def schedule_close() -> None:
        nonlocal close_task
        close_task = loop.create_task(session.close(completion=completion))
        _background.add(close_task)
        close_task.add_done_callback(_background.discard)

    def release() -> None:
        nonlocal released
        if released:
            log.debug("Ignoring second release of %s", path)
            return
        released = True
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            schedule_close()
        else:
            loop.call_soon_threadsafe(schedule_close)

    try:
        outcome = body(session, release)
        if asyncio.iscoroutine(outcome):
            await outcome
    except asyncio.CancelledError:
        if not released:
            released = True
            log.debug("Body for %s was cancelled before release, closing session", path)
            try:
                await _close_unreleased(session)
            finally:
                cancelled = OperationCancelled("Session body was cancelled", path=path)
                context.dispatch(completion, OperationResult.failure(cancelled))
        raise
    except Exception as exc:
        if released:
            raise
        released = True
        log.debug("Body for %s raised before release, closing session", path)
        await _close_unreleased(session)
        context.dispatch(completion, OperationResult.failure(exc))
        return

    if close_task is not None:
        await asyncio.shield(close_task)
