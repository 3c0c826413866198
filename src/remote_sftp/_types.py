"""Type aliases used throughout remote_sftp."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from remote_sftp._result import OperationResult

Completion = Callable[["OperationResult[Any]"], None]
Release = Callable[[], None]
