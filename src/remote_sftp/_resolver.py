"""Path resolution by repeated canonicalization."""

from __future__ import annotations

from typing import TYPE_CHECKING

from remote_sftp._converge import converge
from remote_sftp._errors import ProtocolError
from remote_sftp._path import CanonicalPath

if TYPE_CHECKING:
    from remote_sftp._cancel import CancellationToken
    from remote_sftp._channel import Channel


async def resolve_path(channel: Channel, path: str, *, token: CancellationToken | None = None) -> CanonicalPath:
    """Canonicalize ``path`` until two consecutive answers agree.

    The input path seeds the loop, so an already canonical path settles after
    one request and a path that resolves once settles after two. The stable
    answer is returned exactly as the channel reported it.

    :raises ProtocolError: If the channel returns no candidate names.
    """

    async def step(current: str) -> str:
        names = await channel.realpath(current)
        if not names:
            raise ProtocolError("Canonicalization returned no names", path=current, channel=channel.name)
        return names[0]

    def merge(new: str, old: str) -> tuple[str, bool]:
        return new, new != old

    resolved = await converge(step, merge, path, token=token, label=f"realpath {path!r}")
    return CanonicalPath(resolved)
