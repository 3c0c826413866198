"""CancellationToken — cooperative cancellation for multi-round operations."""

from __future__ import annotations

import logging
import threading

from remote_sftp._errors import OperationCancelled

log = logging.getLogger(__name__)


class CancellationToken:
    """A one-way flag checked between rounds of a multi-round operation.

    Cancelling never interrupts a request already in flight; it stops the
    next round from being issued. Safe to cancel from any thread.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            log.debug("Cancellation requested: %s", reason)

    def raise_if_cancelled(self, path: str | None = None) -> None:
        """Raise if the token has fired.

        :raises OperationCancelled: If :meth:`cancel` was called.
        """
        if self._event.is_set():
            raise OperationCancelled(f"Operation cancelled: {self._reason}", path=path)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled!r})"
