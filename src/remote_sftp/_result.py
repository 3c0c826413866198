"""OperationResult — the value delivered to completion callbacks."""

from __future__ import annotations

import dataclasses
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of one asynchronous operation: a value or a failure.

    :param value: The success value (``None`` for void operations).
    :param error: The failure, or ``None`` on success.
    """

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> OperationResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> OperationResult[T]:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the stored failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
