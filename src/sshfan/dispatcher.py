"""Bounded-concurrency fan-out/fan-in over a list of targets.

Every target gets its own task so a slow host never holds up submission
of work to the others. Tasks queue on a per-run SlotPool before calling
the operation, which caps how many operations are in flight at once.
Results are pushed onto a queue as they complete; a closer task waits
for all units and only then enqueues the end-of-stream marker.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from .models import JobResult

logger = logging.getLogger(__name__)

# Type alias for the per-target operation
Operation = Callable[[str], Awaitable[JobResult]]  # (target) -> JobResult

_DONE = object()


class SlotPool:
    """Fixed number of slots gating concurrently active operations."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.active = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(capacity)

    async def __aenter__(self) -> SlotPool:
        await self._semaphore.acquire()
        self.active += 1
        self.peak = max(self.peak, self.active)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.active -= 1
        self._semaphore.release()


class Dispatcher:
    """Runs one operation per target, at most ``capacity`` at a time."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity

    async def run(self, targets: Sequence[str], operation: Operation) -> list[JobResult]:
        """Run all targets and return results in completion order."""
        return [result async for result in self.stream(targets, operation)]

    async def stream(
        self, targets: Sequence[str], operation: Operation
    ) -> AsyncIterator[JobResult]:
        """Yield one JobResult per target as each operation completes."""
        pool = SlotPool(self.capacity)
        results: asyncio.Queue[Any] = asyncio.Queue()

        logger.debug(
            "Dispatching %d target(s) with capacity %d", len(targets), self.capacity
        )
        units = [
            asyncio.create_task(self._run_unit(pool, target, operation, results))
            for target in targets
        ]
        closer = asyncio.create_task(self._close_when_done(units, results))

        try:
            while True:
                item = await results.get()
                if item is _DONE:
                    break
                yield item
        finally:
            # Only non-empty if the consumer stopped iterating early
            pending = [task for task in (*units, closer) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _run_unit(
        self,
        pool: SlotPool,
        target: str,
        operation: Operation,
        results: asyncio.Queue[Any],
    ) -> None:
        """Acquire a slot, run the operation, release, then emit the result."""
        async with pool:
            try:
                result = await operation(target)
            except Exception as e:
                logger.debug("Operation on %s raised %r", target, e)
                result = JobResult.failed(target, str(e) or type(e).__name__)
        await results.put(result)

    async def _close_when_done(
        self, units: list[asyncio.Task[None]], results: asyncio.Queue[Any]
    ) -> None:
        """Signal end-of-stream once every unit has finished."""
        await asyncio.gather(*units, return_exceptions=True)
        await results.put(_DONE)
