"""RemoteHandle — single-owner token for an open remote directory or file, and its guarded acquisition."""

from __future__ import annotations

import asyncio
import enum
import functools
import logging
from typing import TYPE_CHECKING

from remote_sftp._errors import HandleClosed

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from remote_sftp._channel import Channel

log = logging.getLogger(__name__)


class HandleKind(enum.Enum):
    DIRECTORY = "directory"
    FILE = "file"


class HandleState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class RemoteHandle:
    """An opaque server-assigned handle with explicit open/closed state.

    The handle is released with exactly one ``close_handle`` request; later
    :meth:`release` calls are no-ops.

    :param token: The raw handle bytes returned by the channel.
    :param kind: Whether the handle refers to a directory or a file.
    :param path: The path the handle was opened against.
    """

    __slots__ = ("_kind", "_path", "_state", "_token")

    def __init__(self, token: bytes, kind: HandleKind, path: str) -> None:
        self._token = token
        self._kind = kind
        self._path = path
        self._state = HandleState.OPEN

    @property
    def kind(self) -> HandleKind:
        return self._kind

    @property
    def path(self) -> str:
        return self._path

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is HandleState.OPEN

    @property
    def token(self) -> bytes:
        """The raw handle for channel requests.

        :raises HandleClosed: If the handle has been released.
        """
        if self._state is not HandleState.OPEN:
            raise HandleClosed(f"{self._kind.value.capitalize()} handle is {self._state.value}", path=self._path)
        return self._token

    async def release(self, channel: Channel) -> bool:
        """Send the close request for this handle, once.

        The handle counts as closed even if the request fails: the server
        either released it or the connection is gone.

        :returns: ``True`` if a close request was issued, ``False`` if the
            handle was already released.
        """
        if self._state is not HandleState.OPEN:
            log.debug("Ignoring second release of %s handle for %s", self._kind.value, self._path)
            return False
        self._state = HandleState.CLOSING
        try:
            await channel.close_handle(self._token)
        finally:
            self._state = HandleState.CLOSED
            log.debug("Released %s handle for %s", self._kind.value, self._path)
        return True

    def __repr__(self) -> str:
        return f"RemoteHandle(kind={self._kind.value!r}, path={self._path!r}, state={self._state.value!r})"


# Background releases for handles whose opener was cancelled mid-request
_orphans: set[asyncio.Task[bool]] = set()


async def open_guarded(opening: Awaitable[bytes], kind: HandleKind, path: str, channel: Channel) -> RemoteHandle:
    """Await an open request and wrap the returned token in a :class:`RemoteHandle`.

    The request itself is shielded from cancellation of the awaiting task.
    If that task is cancelled, the request is left to finish and any handle
    the server still grants is released in the background.
    """
    request = asyncio.ensure_future(opening)
    try:
        token = await asyncio.shield(request)
    except asyncio.CancelledError:
        request.add_done_callback(functools.partial(_release_orphan, kind=kind, path=path, channel=channel))
        raise
    return RemoteHandle(token, kind, path)


def _release_orphan(request: asyncio.Future[bytes], *, kind: HandleKind, path: str, channel: Channel) -> None:
    if request.cancelled() or request.exception() is not None:
        return
    handle = RemoteHandle(request.result(), kind, path)
    log.debug("Releasing %s handle for %s after its opener was cancelled", kind.value, path)
    task = request.get_loop().create_task(handle.release(channel))
    _orphans.add(task)
    task.add_done_callback(_orphan_released)


def _orphan_released(task: asyncio.Task[bool]) -> None:
    _orphans.discard(task)
    if not task.cancelled() and task.exception() is not None:
        log.warning("Failed to release orphaned handle", exc_info=task.exception())
