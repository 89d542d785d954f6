"""Fixed-size asyncio worker pool draining a shared queue."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")


async def run_bounded(
    items: Iterable[T],
    concurrency: int,
    handler: Callable[[T], Awaitable[None]],
) -> None:
    """Run ``handler`` over ``items`` with at most ``concurrency`` in flight.

    Items are taken in order from one queue; workers exit once it is empty.
    Exceptions raised by ``handler`` propagate.
    """
    queue: "asyncio.Queue[T]" = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)
    if queue.empty():
        return

    async def worker() -> None:
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await handler(item)

    workers = min(max(1, concurrency), queue.qsize())
    await asyncio.gather(*(worker() for _ in range(workers)))
