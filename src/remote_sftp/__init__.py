"""Asynchronous SFTP client orchestration over a protocol channel."""

from remote_sftp._cancel import CancellationToken
from remote_sftp._channel import Channel
from remote_sftp._client import SFTPClient
from remote_sftp._config import ConnectionConfig, HostKeyPolicy
from remote_sftp._context import ExecutionContext, ExecutorContext, InlineContext, LoopContext
from remote_sftp._converge import converge
from remote_sftp._enumerator import list_directory
from remote_sftp._errors import (
    AlreadyExists,
    ChannelUnavailable,
    HandleClosed,
    InvalidPath,
    NotFound,
    OperationCancelled,
    PermissionDenied,
    ProtocolError,
    RemoteSFTPError,
)
from remote_sftp._handle import HandleKind, HandleState, RemoteHandle
from remote_sftp._models import DirectoryEntry, DirectoryPage, FileAttributes, OpenFlags, StatusCode
from remote_sftp._path import CanonicalPath
from remote_sftp._resolver import resolve_path
from remote_sftp._result import OperationResult
from remote_sftp._session import FileSession, open_file, with_file

__version__ = "0.1.0"

__all__ = [
    # Core
    "SFTPClient",
    "Channel",
    "FileSession",
    # Operations
    "converge",
    "resolve_path",
    "list_directory",
    "open_file",
    "with_file",
    # Models
    "CanonicalPath",
    "DirectoryEntry",
    "DirectoryPage",
    "FileAttributes",
    "OpenFlags",
    "StatusCode",
    "RemoteHandle",
    "HandleKind",
    "HandleState",
    "OperationResult",
    # Scheduling
    "ExecutionContext",
    "LoopContext",
    "ExecutorContext",
    "InlineContext",
    "CancellationToken",
    # Config
    "ConnectionConfig",
    "HostKeyPolicy",
    # Errors
    "RemoteSFTPError",
    "NotFound",
    "AlreadyExists",
    "PermissionDenied",
    "InvalidPath",
    "ChannelUnavailable",
    "ProtocolError",
    "OperationCancelled",
    "HandleClosed",
    # Version
    "__version__",
]
