"""Convergence loop — repeat a remote request until the accumulator settles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from remote_sftp._cancel import CancellationToken

A = TypeVar("A")
T = TypeVar("T")

log = logging.getLogger(__name__)


async def converge(
    step: Callable[[A], Awaitable[T]],
    merge: Callable[[T, A], tuple[A, bool]],
    seed: A,
    *,
    token: CancellationToken | None = None,
    label: str = "converge",
) -> A:
    """Drive ``step`` repeatedly, folding each response with ``merge``.

    Each round awaits ``step(acc)`` and then calls ``merge(response, acc)``,
    which returns the next accumulator and whether to go on. Rounds run
    strictly one after another. A failing ``step`` aborts the loop and its
    exception propagates unchanged; ``merge`` is not called for it.

    ``merge`` must be synchronous and must not touch the channel; it may
    grow an accumulator the caller owns in place. There is no iteration bound: a
    ``merge`` that never returns ``False`` loops until the token or the task
    is cancelled.

    :param step: Issues one remote request for the current accumulator.
    :param merge: Folds a response into the accumulator.
    :param seed: Initial accumulator.
    :param token: Checked before every round.
    :param label: Name used in debug logging.
    :raises OperationCancelled: If ``token`` fires between rounds.
    """
    acc = seed
    rounds = 0
    while True:
        if token is not None:
            token.raise_if_cancelled()
        rounds += 1
        response = await step(acc)
        acc, should_continue = merge(response, acc)
        log.debug("%s: round %d merged, continue=%s", label, rounds, should_continue)
        if not should_continue:
            return acc
