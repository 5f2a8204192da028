"""Bounds the number of renders running at the same time."""
import asyncio
from contextlib import asynccontextmanager

DEFAULT_MAX_CONCURRENT = 3


class CaptureThrottle:
    """Counting gate for capture jobs.

    At most ``limit`` holders are admitted; the rest wait on a condition
    variable and are woken one at a time, oldest first, as permits are
    released.
    """

    def __init__(self, limit: int = DEFAULT_MAX_CONCURRENT):
        if limit < 1:
            raise ValueError(f"Throttle limit must be at least 1, got {limit}")
        self.limit = limit
        self._in_flight = 0
        self._condition = asyncio.Condition()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self) -> None:
        async with self._condition:
            try:
                await self._condition.wait_for(lambda: self._in_flight < self.limit)
            except asyncio.CancelledError:
                # A cancelled waiter may have taken the wakeup meant for the next one
                if self._in_flight < self.limit:
                    self._condition.notify()
                raise
            self._in_flight += 1

    async def release(self) -> None:
        async with self._condition:
            if self._in_flight <= 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._in_flight -= 1
            self._condition.notify()

    @asynccontextmanager
    async def permit(self):
        await self.acquire()
        try:
            yield self
        finally:
            await self.release()
