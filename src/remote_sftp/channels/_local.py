"""Local channel — stdlib-only reference channel serving a directory tree."""

from __future__ import annotations

import asyncio
import errno
import itertools
import os
import posixpath
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from remote_sftp._channel import Channel
from remote_sftp._errors import (
    AlreadyExists,
    HandleClosed,
    NotFound,
    PermissionDenied,
    RemoteSFTPError,
)
from remote_sftp._models import DirectoryEntry, DirectoryPage, FileAttributes, OpenFlags

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

T = TypeVar("T")

_DEFAULT_PAGE_SIZE = 100


def attributes_from_stat(st: os.stat_result) -> FileAttributes:
    """Build :class:`FileAttributes` from an ``os.stat_result``."""
    return FileAttributes(
        size=st.st_size,
        uid=st.st_uid,
        gid=st.st_gid,
        permissions=st.st_mode,
        atime=int(st.st_atime),
        mtime=int(st.st_mtime),
    )


def _os_flags(flags: OpenFlags) -> int:
    if flags & OpenFlags.READ and flags & OpenFlags.WRITE:
        result = os.O_RDWR
    elif flags & OpenFlags.WRITE:
        result = os.O_WRONLY
    else:
        result = os.O_RDONLY
    if flags & OpenFlags.APPEND:
        result |= os.O_APPEND
    if flags & OpenFlags.CREATE:
        result |= os.O_CREAT
    if flags & OpenFlags.TRUNCATE:
        result |= os.O_TRUNC
    if flags & OpenFlags.EXCLUSIVE:
        result |= os.O_EXCL
    return result | getattr(os, "O_BINARY", 0)


class _OpenDir:
    """Server-side state of an open directory: remaining names."""

    def __init__(self, native: Path, names: list[str]) -> None:
        self.native = native
        self.names = iter(names)


class _OpenFile:
    """Server-side state of an open file: descriptor plus a seek lock."""

    def __init__(self, fd: int, path: str) -> None:
        self.fd = fd
        self.path = path
        self.lock = threading.Lock()


class LocalChannel(Channel):
    """Serves a local directory as the root of a remote file system.

    Paths are POSIX style; relative paths are taken from ``/``. Symlinks are
    followed but may not escape the root. Blocking I/O runs in worker threads.

    :param root: Local directory to serve as ``/``.
    :param page_size: Entries per read-directory page.
    """

    def __init__(self, root: str, *, page_size: int = _DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._page_size = page_size
        self._handles: dict[bytes, _OpenDir | _OpenFile] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "local"

    @property
    def root(self) -> Path:
        return self._root

    def __repr__(self) -> str:
        return f"LocalChannel(root={str(self._root)!r}, page_size={self._page_size})"

    # region: path safety
    def _native(self, path: str) -> Path:
        """Map a remote path onto the served tree.

        Intermediate symlinks are followed; the final component is not.

        :raises PermissionDenied: If a symlink leads outside the root.
        """
        remote = posixpath.normpath(posixpath.join("/", path.replace("\\", "/")))
        parts = [p for p in remote.split("/") if p]
        if not parts:
            return self._root
        parent = self._root.joinpath(*parts[:-1]).resolve()
        if not parent.is_relative_to(self._root):
            raise PermissionDenied(f"Path escapes root directory: {path}", path=path, channel=self.name)
        return parent / parts[-1]

    def _followed(self, path: str) -> Path:
        """Map a remote path, following a symlink in the final component too.

        :raises PermissionDenied: If the target lies outside the root.
        """
        native = self._native(path).resolve()
        if not native.is_relative_to(self._root):
            raise PermissionDenied(f"Path escapes root directory: {path}", path=path, channel=self.name)
        return native

    def _to_remote(self, native: Path, path: str) -> str:
        """Convert a fully resolved native path back into a remote path."""
        try:
            rel = native.relative_to(self._root)
        except ValueError:
            raise PermissionDenied(f"Path escapes root directory: {path}", path=path, channel=self.name) from None
        posix = rel.as_posix()
        return "/" if posix == "." else f"/{posix}"

    # endregion

    # region: error mapping
    @contextmanager
    def _errors(self, path: str = "") -> Iterator[None]:
        """Map OS exceptions to remote_sftp errors."""
        try:
            yield
        except RemoteSFTPError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {path}", path=path, channel=self.name) from None
        except FileExistsError:
            raise AlreadyExists(f"Already exists: {path}", path=path, channel=self.name) from None
        except PermissionError:
            raise PermissionDenied(f"Permission denied: {path}", path=path, channel=self.name) from None
        except OSError as exc:
            code = getattr(exc, "errno", None)
            if code == errno.ENOENT:
                raise NotFound(f"Not found: {path}", path=path, channel=self.name) from None
            if code == errno.EEXIST:
                raise AlreadyExists(f"Already exists: {path}", path=path, channel=self.name) from None
            raise RemoteSFTPError(str(exc), path=path, channel=self.name) from None

    async def _run(self, path: str, fn: Callable[[], T]) -> T:
        def _call() -> T:
            with self._errors(path):
                return fn()

        return await asyncio.to_thread(_call)

    # endregion

    # region: handle table
    def _register(self, state: _OpenDir | _OpenFile) -> bytes:
        with self._lock:
            handle = str(next(self._counter)).encode()
            self._handles[handle] = state
        return handle

    def _lookup_dir(self, handle: bytes) -> _OpenDir:
        state = self._handles.get(handle)
        if not isinstance(state, _OpenDir):
            raise HandleClosed("Invalid directory handle", channel=self.name)
        return state

    def _lookup_file(self, handle: bytes) -> _OpenFile:
        state = self._handles.get(handle)
        if not isinstance(state, _OpenFile):
            raise HandleClosed("Invalid file handle", channel=self.name)
        return state

    # endregion

    # region: path operations
    async def realpath(self, path: str) -> list[str]:
        def _realpath() -> list[str]:
            resolved = self._native(path).resolve(strict=True)
            return [self._to_remote(resolved, path)]

        return await self._run(path, _realpath)

    async def stat(self, path: str) -> FileAttributes:
        return await self._run(path, lambda: attributes_from_stat(os.stat(self._followed(path))))

    async def mkdir(self, path: str, attributes: FileAttributes) -> None:
        mode = attributes.permissions & 0o7777 if attributes.permissions is not None else 0o755
        await self._run(path, lambda: os.mkdir(self._followed(path), mode))

    async def rename(self, old_path: str, new_path: str) -> None:
        def _rename() -> None:
            src = self._native(old_path)
            dst = self._native(new_path)
            os.lstat(src)
            if os.path.lexists(dst):
                raise AlreadyExists(f"Already exists: {new_path}", path=new_path, channel=self.name)
            os.rename(src, dst)

        await self._run(old_path, _rename)

    async def rmdir(self, path: str) -> None:
        await self._run(path, lambda: os.rmdir(self._native(path)))

    async def remove(self, path: str) -> None:
        def _remove() -> None:
            native = self._native(path)
            if native.is_dir() and not native.is_symlink():
                raise RemoteSFTPError(f"Is a directory: {path}", path=path, channel=self.name)
            os.remove(native)

        await self._run(path, _remove)

    # endregion

    # region: directory handles
    async def open_dir(self, path: str) -> bytes:
        def _open() -> bytes:
            native = self._followed(path)
            names = os.listdir(native)
            return self._register(_OpenDir(native, names))

        return await self._run(path, _open)

    async def read_dir(self, handle: bytes) -> DirectoryPage:
        state = self._lookup_dir(handle)

        def _read() -> DirectoryPage:
            entries: list[DirectoryEntry] = []
            for name in state.names:
                try:
                    attrs = attributes_from_stat(os.lstat(state.native / name))
                except FileNotFoundError:
                    # removed since the directory was opened
                    continue
                entries.append(DirectoryEntry(filename=name, attributes=attrs))
                if len(entries) >= self._page_size:
                    break
            if not entries:
                return DirectoryPage.end()
            return DirectoryPage.batch(entries)

        return await self._run(str(state.native), _read)

    # endregion

    # region: file handles
    async def open_file(self, path: str, flags: OpenFlags, attributes: FileAttributes) -> bytes:
        mode = attributes.permissions & 0o7777 if attributes.permissions is not None else 0o644

        def _open() -> bytes:
            fd = os.open(self._followed(path), _os_flags(flags), mode)
            return self._register(_OpenFile(fd, path))

        return await self._run(path, _open)

    async def read(self, handle: bytes, offset: int, length: int) -> bytes:
        state = self._lookup_file(handle)

        def _read() -> bytes:
            with state.lock:
                os.lseek(state.fd, offset, os.SEEK_SET)
                return os.read(state.fd, length)

        return await self._run(state.path, _read)

    async def write(self, handle: bytes, offset: int, data: bytes) -> None:
        state = self._lookup_file(handle)

        def _write() -> None:
            view = memoryview(data)
            with state.lock:
                os.lseek(state.fd, offset, os.SEEK_SET)
                while view:
                    written = os.write(state.fd, view)
                    view = view[written:]

        await self._run(state.path, _write)

    async def fstat(self, handle: bytes) -> FileAttributes:
        state = self._lookup_file(handle)
        return await self._run(state.path, lambda: attributes_from_stat(os.fstat(state.fd)))

    async def close_handle(self, handle: bytes) -> None:
        with self._lock:
            state = self._handles.pop(handle, None)
        if state is None:
            raise HandleClosed("Invalid handle", channel=self.name)
        if isinstance(state, _OpenFile):
            await self._run(state.path, lambda: os.close(state.fd))

    # endregion

    # region: lifecycle
    @property
    def open_handles(self) -> int:
        """Number of handles not yet released."""
        return len(self._handles)

    async def close(self) -> None:
        with self._lock:
            states = list(self._handles.values())
            self._handles.clear()
        for state in states:
            if isinstance(state, _OpenFile):
                await self._run(state.path, lambda fd=state.fd: os.close(fd))

    # endregion
