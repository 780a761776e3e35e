"""Apply one asynchronous operation per item with a bounded number of workers."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import TypeVar

from integrity.engine.cancel import CancelToken
from integrity.errors import BatchCancelledError, InvalidArgumentError, ItemFailure, PartialFailureError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ALL_UNITS = -1


def resolve_parallelism(parallelism: int) -> int:
    """Return the worker count for a requested parallelism degree.

    ``0`` and ``1`` mean sequential processing and ``-1`` the number of
    logical CPUs at call time.
    """
    if parallelism == ALL_UNITS:
        return os.cpu_count() or 1
    if parallelism < 0:
        raise InvalidArgumentError(f"parallelism must be -1 or >= 0, got {parallelism}")
    return max(parallelism, 1)


async def for_each(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[object]],
    *,
    parallelism: int = 0,
    cancel_token: CancelToken | None = None,
    fail_fast: bool = False,
) -> None:
    """Await `operation` once for every item of `items`.

    Workers claim items from one shared iterator, so every item is handed out
    exactly once and `items` may be a lazy or unbounded iterable. The cancel
    token is checked before an item is started; an item already started runs
    to completion.

    Failing items are collected and reported together as
    :class:`PartialFailureError` after every other item was attempted. With
    `fail_fast`, no new item is started after the first failure and that
    failure is re-raised unchanged. Cancellation takes precedence over both
    and raises :class:`BatchCancelledError`, unless it arrived only after the
    last item had been processed.
    """
    workers = resolve_parallelism(parallelism)
    token = cancel_token or CancelToken()
    token.raise_if_cancelled()
    halt = CancelToken()
    failures: list[ItemFailure] = []
    cursor = iter(items)

    LOGGER.debug("Dispatching batch across %d worker(s)", workers)
    if workers == 1:
        exhausted = await _drain(cursor, operation, token, halt, failures, fail_fast)
    else:
        finished = await asyncio.gather(
            *(_drain(cursor, operation, token, halt, failures, fail_fast) for _ in range(workers))
        )
        exhausted = any(finished)

    if token.cancelled and not exhausted:
        raise BatchCancelledError(failures)
    if failures:
        if fail_fast:
            raise failures[0].error
        raise PartialFailureError(failures)


async def _drain(
    cursor: Iterator[T],
    operation: Callable[[T], Awaitable[object]],
    token: CancelToken,
    halt: CancelToken,
    failures: list[ItemFailure],
    fail_fast: bool,
) -> bool:
    """Work through `cursor` and return True once it is exhausted."""
    while True:
        try:
            item = next(cursor)
        except StopIteration:
            return True
        if token.cancelled or halt.cancelled:
            return False
        try:
            await operation(item)
        except Exception as exc:  # noqa: BLE001 - recorded and reported after the batch
            LOGGER.debug("Item %r failed: %s", item, exc)
            failures.append(ItemFailure(item, exc))
            if fail_fast:
                halt.cancel()
        # let sibling workers and the cancel check run between items
        await asyncio.sleep(0)
