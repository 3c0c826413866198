"""Immutable protocol value types: attributes, entries, pages and flags."""

from __future__ import annotations

import dataclasses
import enum
import stat
from datetime import datetime, timezone
from typing import ClassVar, Optional


class OpenFlags(enum.IntFlag):
    """Open-file flags, using the SFTP v3 ``pflags`` bit values."""

    READ = 0x01
    WRITE = 0x02
    APPEND = 0x04
    CREATE = 0x08
    TRUNCATE = 0x10
    EXCLUSIVE = 0x20


class StatusCode(enum.IntEnum):
    """SFTP v3 status codes carried by terminal directory pages."""

    OK = 0
    EOF = 1
    NO_SUCH_FILE = 2
    PERMISSION_DENIED = 3
    FAILURE = 4
    BAD_MESSAGE = 5
    NO_CONNECTION = 6
    CONNECTION_LOST = 7
    OP_UNSUPPORTED = 8


@dataclasses.dataclass(frozen=True)
class FileAttributes:
    """Immutable snapshot of remote file attributes.

    Every field is optional because the remote side only reports the
    attributes it was asked for (or chose to send).

    :param size: Size in bytes.
    :param uid: Owner user id.
    :param gid: Owner group id.
    :param permissions: ``st_mode`` style permission and type bits.
    :param atime: Last access time, seconds since the epoch.
    :param mtime: Last modification time, seconds since the epoch.
    :param extended: Extended attribute pairs.
    """

    NONE: ClassVar[FileAttributes]

    size: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    permissions: Optional[int] = None
    atime: Optional[int] = None
    mtime: Optional[int] = None
    extended: tuple[tuple[str, str], ...] = ()

    @property
    def is_dir(self) -> bool:
        return self.permissions is not None and stat.S_ISDIR(self.permissions)

    @property
    def is_file(self) -> bool:
        return self.permissions is not None and stat.S_ISREG(self.permissions)

    @property
    def is_symlink(self) -> bool:
        return self.permissions is not None and stat.S_ISLNK(self.permissions)

    @property
    def modified_at(self) -> datetime | None:
        """Modification time as an aware UTC datetime, if reported."""
        if self.mtime is None:
            return None
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc)


FileAttributes.NONE = FileAttributes()


@dataclasses.dataclass(frozen=True)
class DirectoryEntry:
    """One name reported by a directory page.

    :param filename: Entry name, relative to the listed directory.
    :param longname: ``ls -l`` style line as sent by the server (may be empty).
    :param attributes: Attributes reported alongside the name.
    """

    filename: str
    longname: str = ""
    attributes: FileAttributes = FileAttributes.NONE


@dataclasses.dataclass(frozen=True)
class DirectoryPage:
    """One read-directory response: a batch of entries or a terminal status.

    Use :meth:`batch` and :meth:`end` rather than the constructor.
    """

    entries: tuple[DirectoryEntry, ...] = ()
    status: Optional[StatusCode] = None

    @classmethod
    def batch(cls, entries: list[DirectoryEntry] | tuple[DirectoryEntry, ...]) -> DirectoryPage:
        return cls(entries=tuple(entries))

    @classmethod
    def end(cls, status: StatusCode = StatusCode.EOF) -> DirectoryPage:
        return cls(status=status)

    @property
    def is_terminal(self) -> bool:
        return self.status is not None
