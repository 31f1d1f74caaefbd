"""
Bounded fan-out for rate-limited APIs.

A fixed number of workers pull fixed-size batches from a shared queue
until it is empty. Results are concatenated in completion order.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def split_into_batches(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def run_batches(
    items: Sequence[T],
    batch_size: int,
    handler: Callable[[List[T]], Awaitable[List[Any]]],
    concurrency: int = 2,
) -> List[Any]:
    """
    Run ``handler`` over batches of ``items`` with at most ``concurrency``
    batches in flight.

    An exception from any handler cancels the remaining workers and
    propagates.
    """
    batches = split_into_batches(items, batch_size)
    if not batches:
        return []

    queue: "asyncio.Queue[List[T]]" = asyncio.Queue()
    for batch in batches:
        queue.put_nowait(batch)

    results: List[Any] = []

    async def worker() -> None:
        while True:
            try:
                batch = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            batch_result = await handler(batch)
            if batch_result:
                results.extend(batch_result)

    worker_count = max(1, min(concurrency, len(batches)))
    logger.debug(f"Running {len(batches)} batches of up to {batch_size} with {worker_count} workers")
    tasks = [asyncio.ensure_future(worker()) for _ in range(worker_count)]
    try:
        await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        raise
    return results
