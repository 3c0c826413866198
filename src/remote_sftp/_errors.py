"""Normalized error hierarchy for remote_sftp."""

from __future__ import annotations

from typing import Optional


class RemoteSFTPError(Exception):
    """Base class for all remote_sftp errors.

    :param message: Human-readable error description.
    :param path: The remote path involved in the error, if any.
    :param channel: The channel name involved, if any.
    """

    def __init__(self, message: str = "", *, path: Optional[str] = None, channel: Optional[str] = None) -> None:
        self.path = path
        self.channel = channel
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.channel is not None:
            parts.append(f"channel={self.channel!r}")
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(super().__str__())]
        if self.path is not None:
            args.append(f"path={self.path!r}")
        if self.channel is not None:
            args.append(f"channel={self.channel!r}")
        return f"{cls}({', '.join(args)})"


class NotFound(RemoteSFTPError):
    """Raised when the remote side reports that a file or directory does not exist."""


class AlreadyExists(RemoteSFTPError):
    """Raised when the target of a create or rename already exists."""


class PermissionDenied(RemoteSFTPError):
    """Raised when access is denied by the remote side."""


class ChannelUnavailable(RemoteSFTPError):
    """Raised when the transport cannot be reached or the connection was lost."""


class ProtocolError(RemoteSFTPError):
    """Raised for malformed or unexpected channel responses."""


class OperationCancelled(RemoteSFTPError):
    """Raised when a cancellation token fires before an operation completes."""


class HandleClosed(RemoteSFTPError):
    """Raised when an operation targets a handle that was already released."""


class InvalidPath(RemoteSFTPError):
    """Raised for empty paths or paths containing a null byte."""
