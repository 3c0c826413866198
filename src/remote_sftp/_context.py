"""Execution contexts — where completion callbacks are delivered."""

from __future__ import annotations

import abc
import asyncio
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, TypeVar

from remote_sftp._errors import OperationCancelled
from remote_sftp._result import OperationResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from remote_sftp._types import Completion

T = TypeVar("T")

log = logging.getLogger(__name__)


class ExecutionContext(abc.ABC):
    """Abstract scheduler onto which completions are dispatched."""

    @abc.abstractmethod
    def dispatch(self, fn: Callable[..., object], *args: Any) -> None:
        """Schedule ``fn(*args)``. Must not run it after raising."""

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""


class InlineContext(ExecutionContext):
    """Runs callbacks immediately in the completing coroutine."""

    def dispatch(self, fn: Callable[..., object], *args: Any) -> None:
        fn(*args)

    def __repr__(self) -> str:
        return "InlineContext()"


class LoopContext(ExecutionContext):
    """Delivers callbacks on an asyncio event loop.

    :param loop: Target loop. When omitted, the loop running at dispatch time
        is used.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def dispatch(self, fn: Callable[..., object], *args: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon_threadsafe(fn, *args)

    def __repr__(self) -> str:
        return f"LoopContext(loop={self._loop!r})"


class ExecutorContext(ExecutionContext):
    """Delivers callbacks on a ``concurrent.futures`` executor.

    Used as the background context for file sessions so that slow session
    callbacks do not queue behind listing work on the event loop.

    :param executor: Executor to submit to. When omitted, a single-worker
        thread pool is created lazily and owned by this context.
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor
        self._owned = executor is None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _get_executor(self) -> Executor:
        if self._closed:
            raise RuntimeError("ExecutorContext is closed")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote-sftp-session")
        return self._executor

    def dispatch(self, fn: Callable[..., object], *args: Any) -> None:
        future = self._get_executor().submit(fn, *args)
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future: Future[object]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            log.error("Completion callback raised", exc_info=exc)

    def close(self, *, wait: bool = True) -> None:
        """Stop accepting callbacks and shut down an owned pool."""
        self._closed = True
        if self._owned and self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __repr__(self) -> str:
        return f"ExecutorContext(executor={self._executor!r})"


async def complete(
    awaitable: Awaitable[T],
    completion: Completion | None,
    context: ExecutionContext,
) -> T | None:
    """Await ``awaitable`` and route its outcome.

    Without ``completion`` the value is returned and failures raise. With
    ``completion``, the outcome is dispatched to it exactly once on
    ``context`` as an :class:`OperationResult` and ``None`` is returned.
    Task cancellation is delivered as :class:`OperationCancelled` and then
    re-raised.
    """
    if completion is None:
        return await awaitable
    try:
        value = await awaitable
    except asyncio.CancelledError:
        context.dispatch(completion, OperationResult.failure(OperationCancelled("Operation task was cancelled")))
        raise
    except Exception as exc:
        context.dispatch(completion, OperationResult.failure(exc))
    else:
        context.dispatch(completion, OperationResult.success(value))
    return None
