"""Channel abstract base class — the protocol session contract."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remote_sftp._models import DirectoryPage, FileAttributes, OpenFlags


class Channel(abc.ABC):
    """Abstract base class for protocol channels.

    Each method is one request/response pair. Channels are assumed connected
    and authenticated, and safe to call from concurrent coroutines.
    Channel-native exceptions must never leak: they must be mapped to
    ``remote_sftp`` errors.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel type (e.g. ``'local'``, ``'paramiko'``)."""

    @abc.abstractmethod
    async def realpath(self, path: str) -> list[str]:
        """Ask the remote side for the canonical form of ``path``.

        :returns: The candidate names in server order; the first one is used.
        """

    @abc.abstractmethod
    async def open_dir(self, path: str) -> bytes:
        """Open a directory for reading and return its handle.

        :raises NotFound: If the directory does not exist.
        """

    @abc.abstractmethod
    async def read_dir(self, handle: bytes) -> DirectoryPage:
        """Read the next page of entries, or a terminal status page."""

    @abc.abstractmethod
    async def stat(self, path: str) -> FileAttributes:
        """Return the attributes of ``path``, following symlinks.

        :raises NotFound: If the path does not exist.
        """

    @abc.abstractmethod
    async def open_file(self, path: str, flags: OpenFlags, attributes: FileAttributes) -> bytes:
        """Open a file and return its handle.

        :raises NotFound: If the file is missing and ``CREATE`` is not set.
        :raises AlreadyExists: If ``CREATE | EXCLUSIVE`` is set and the file exists.
        """

    @abc.abstractmethod
    async def read(self, handle: bytes, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes at ``offset``. Returns ``b""`` at end of file."""

    @abc.abstractmethod
    async def write(self, handle: bytes, offset: int, data: bytes) -> None:
        """Write ``data`` at ``offset``."""

    @abc.abstractmethod
    async def fstat(self, handle: bytes) -> FileAttributes:
        """Return the attributes of an open file handle."""

    @abc.abstractmethod
    async def mkdir(self, path: str, attributes: FileAttributes) -> None:
        """Create a directory.

        :raises AlreadyExists: If ``path`` already exists.
        """

    @abc.abstractmethod
    async def rename(self, old_path: str, new_path: str) -> None:
        """Rename ``old_path`` to ``new_path``.

        :raises NotFound: If ``old_path`` does not exist.
        """

    @abc.abstractmethod
    async def rmdir(self, path: str) -> None:
        """Remove an empty directory.

        :raises NotFound: If the directory does not exist.
        """

    @abc.abstractmethod
    async def remove(self, path: str) -> None:
        """Remove a file.

        :raises NotFound: If the file does not exist.
        """

    @abc.abstractmethod
    async def close_handle(self, handle: bytes) -> None:
        """Release a directory or file handle."""

    async def close(self) -> None:  # noqa: B027
        """Close the session. Default is a no-op."""
