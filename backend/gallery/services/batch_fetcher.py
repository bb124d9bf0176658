"""Concurrency-limited batch execution for object fetches."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 4


async def gather_limited(
    items: Sequence[T],
    operation: Callable[[T], Awaitable[R]],
    limit: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Apply ``operation`` to every item with at most ``limit`` running at once.

    A fixed pool of ``limit`` workers pulls items in order, so a large input
    never creates more than ``limit`` pending operations. Results line up
    with ``items`` regardless of completion order. The first failure is
    raised to the caller and stops workers from starting further items.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    if not items:
        return []

    results: list[R | None] = [None] * len(items)
    next_index = 0
    failed = False

    async def worker() -> None:
        nonlocal next_index, failed
        while not failed and next_index < len(items):
            index = next_index
            next_index += 1
            try:
                results[index] = await operation(items[index])
            except BaseException:
                failed = True
                raise

    workers = [worker() for _ in range(min(limit, len(items)))]
    await asyncio.gather(*workers)
    return results  # type: ignore[return-value]
