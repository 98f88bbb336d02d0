"""
Pacing for per-item external calls.

``Pacer`` runs a coroutine function over a sequence with a concurrency cap
and a fixed pause after each item, returning results in input order.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Pacer:
    """
    Args:
        delay_seconds: Pause held by a worker slot after each item
        max_concurrency: Number of items in flight at once (1 = sequential)
        sleep: Injectable sleep, mainly for tests
    """

    def __init__(
        self,
        delay_seconds: float = 0.0,
        max_concurrency: int = 1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.delay_seconds = delay_seconds
        self.max_concurrency = max_concurrency
        self._sleep = sleep

    async def map(self, func: Callable[[T], Awaitable[R]], items: Iterable[T]) -> list[R]:
        items = list(items)
        if not items:
            return []

        if self.max_concurrency == 1:
            results = []
            for index, item in enumerate(items):
                results.append(await func(item))
                if self.delay_seconds and index < len(items) - 1:
                    await self._sleep(self.delay_seconds)
            return results

        semaphore = asyncio.Semaphore(self.max_concurrency)
        last = len(items) - 1

        async def run(index: int, item: T) -> R:
            async with semaphore:
                try:
                    return await func(item)
                finally:
                    if self.delay_seconds and index < last:
                        await self._sleep(self.delay_seconds)

        return list(await asyncio.gather(*(run(i, item) for i, item in enumerate(items))))
