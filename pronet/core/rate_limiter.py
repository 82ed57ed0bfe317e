"""
Staggered batch limiter.
Runs coroutines in small concurrent batches; inside a batch each request starts
a fixed offset after the previous one so the origin never sees a burst.
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

from pronet.core.logger import logger

T = TypeVar('T')
R = TypeVar('R')


class RateLimiter:

    def __init__(self, batch_size: int = 3, stagger: float = 0.5, silent_mode: bool = True):
        self.batch_size = max(1, batch_size)
        self.stagger = max(0.0, stagger)
        self.silent_mode = silent_mode
        self.batches_run = 0

    async def _delayed(self, delay: float, worker: Callable[[T], Awaitable[R]], item: T) -> R:
        if delay > 0:
            await asyncio.sleep(delay)
        return await worker(item)

    async def run(self, items: Sequence[T], worker: Callable[[T], Awaitable[R]]) -> List[R]:
        results: List[R] = []
        self.batches_run = 0

        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            tasks = [
                self._delayed(index * self.stagger, worker, item)
                for index, item in enumerate(batch)
            ]
            results.extend(await asyncio.gather(*tasks))
            self.batches_run += 1

            if not self.silent_mode:
                logger.debug(f"Batch {self.batches_run} done ({len(batch)} requests)")

        return results
