"""CanonicalPath — immutable absolute, symlink-resolved path value object."""

from __future__ import annotations

from typing import Final

from remote_sftp._errors import ProtocolError


class CanonicalPath:
    """An absolute, symlink-resolved remote path.

    Instances are produced by path resolution once canonicalization reaches a
    fixed point; the constructor only checks the shape of the string. The
    string is kept exactly as the remote side reported it, trailing slash
    included; :attr:`name`, :attr:`parent`, :attr:`parts` and :meth:`join`
    ignore trailing slashes.

    :param raw: The canonical path string reported by the remote side.
    :raises ProtocolError: If the path is empty, relative, or contains a null byte.
    """

    __slots__ = ("_path",)
    _path: Final[str]  # type: ignore[misc]

    def __init__(self, raw: str) -> None:
        if "\0" in raw:
            raise ProtocolError("Canonical path contains null byte", path=raw)
        if not raw.startswith("/"):
            raise ProtocolError("Canonical path must be absolute", path=raw)
        object.__setattr__(self, "_path", raw)

    @property
    def _trimmed(self) -> str:
        return self._path.rstrip("/") or "/"

    @property
    def name(self) -> str:
        """Final component of the path (empty for the root)."""
        return self._trimmed.rsplit("/", 1)[-1]

    @property
    def parent(self) -> CanonicalPath:
        """Parent directory; the root is its own parent."""
        if self._path == "/":
            return self
        return CanonicalPath(self._trimmed.rsplit("/", 1)[0] or "/")

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of path components, excluding the leading root."""
        trimmed = self._trimmed
        if trimmed == "/":
            return ()
        return tuple(trimmed[1:].split("/"))

    def join(self, name: str) -> str:
        """Join an entry name onto this directory.

        The result is a plain remote path: the child may itself be a symlink,
        so it is not canonical until resolved.
        """
        trimmed = self._trimmed
        if trimmed == "/":
            return f"/{name}"
        return f"{trimmed}/{name}"

    def __str__(self) -> str:
        return self._path

    def __fspath__(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"CanonicalPath({self._path!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CanonicalPath):
            return self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._path)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"CanonicalPath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"CanonicalPath is immutable: cannot delete '{name}'")
