import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

from setup_logging_optimized import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedTaskQueue:
    """
    Runs async work items with a concurrency cap and a pause between items.

    With concurrency=1 (the default) items run strictly one after another in
    input order, which is how image requests stay inside provider rate limits.
    Results come back in input order. The pause follows every item except
    the last one.
    """

    def __init__(
        self,
        concurrency: int = 1,
        delay_between_tasks: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.delay_between_tasks = delay_between_tasks
        self.sleep = sleep

    async def map(self, items: Sequence[T], worker: Callable[[int, T], Awaitable[R]]) -> List[R]:
        """Apply worker(index, item) to every item; worker exceptions propagate."""
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        last_index = len(items) - 1

        async def _run(index: int, item: T) -> R:
            async with semaphore:
                try:
                    return await worker(index, item)
                finally:
                    if index != last_index and self.delay_between_tasks > 0:
                        logger.debug(f"[QUEUE] Waiting {self.delay_between_tasks}s before next task")
                        await self.sleep(self.delay_between_tasks)

        if self.concurrency == 1:
            # Plain loop keeps dispatch order obvious
            return [await _run(i, item) for i, item in enumerate(items)]
        return list(await asyncio.gather(*(_run(i, item) for i, item in enumerate(items))))
