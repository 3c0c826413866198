"""Directory enumeration: resolve, open, read pages to exhaustion, release."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_sftp._converge import converge
from remote_sftp._handle import HandleKind, RemoteHandle, open_guarded
from remote_sftp._resolver import resolve_path

if TYPE_CHECKING:
    from remote_sftp._cancel import CancellationToken
    from remote_sftp._channel import Channel
    from remote_sftp._models import DirectoryEntry, DirectoryPage

log = logging.getLogger(__name__)


async def list_directory(
    channel: Channel,
    path: str,
    *,
    token: CancellationToken | None = None,
) -> list[DirectoryEntry]:
    """Return every entry of the directory at ``path``, in server order.

    Any failure aborts the whole listing and no partial entries are
    returned. The directory handle is closed on every exit path.

    :raises NotFound: If the directory does not exist.
    :raises OperationCancelled: If ``token`` fires between rounds.
    """
    canonical = await resolve_path(channel, path, token=token)
    if token is not None:
        token.raise_if_cancelled(str(canonical))
    handle = await open_guarded(channel.open_dir(str(canonical)), HandleKind.DIRECTORY, str(canonical), channel)
    log.debug("Opened directory handle for %s", canonical)

    async def step(_: list[DirectoryEntry]) -> DirectoryPage:
        return await channel.read_dir(handle.token)

    def merge(page: DirectoryPage, acc: list[DirectoryEntry]) -> tuple[list[DirectoryEntry], bool]:
        if page.is_terminal:
            return acc, False
        acc.extend(page.entries)
        return acc, True

    try:
        return await converge(step, merge, [], token=token, label=f"readdir {canonical}")
    finally:
        await _release_quietly(channel, handle)


async def _release_quietly(channel: Channel, handle: RemoteHandle) -> None:
    """Close a directory handle without masking the listing outcome."""
    try:
        await handle.release(channel)
    except Exception:
        log.warning("Failed to release directory handle for %s", handle.path, exc_info=True)
