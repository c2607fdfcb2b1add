from __future__ import annotations

"""
Admission control for the batch.

``RateLimiter`` caps how many reference pipelines run at once and keeps a
minimum gap between admissions, so a batch of 50 URLs does not open 50
searches in the same second.

``SearchQuota`` is the optional remaining-search budget for a run.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from .errors import DiscoveryFailure


class RateLimiter:
    def __init__(
        self,
        max_concurrent: int,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._slots = asyncio.Semaphore(max_concurrent)
        self._gate = asyncio.Lock()
        self._last_admit: Optional[float] = None
        self.active = 0
        self.peak_active = 0

    async def _wait_for_turn(self) -> None:
        async with self._gate:
            if self._last_admit is not None and self.min_interval > 0:
                wait = self.min_interval - (self._clock() - self._last_admit)
                if wait > 0:
                    await self._sleep(wait)
            self._last_admit = self._clock()

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[None]:
        await self._slots.acquire()
        try:
            await self._wait_for_turn()
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            try:
                yield
            finally:
                self.active -= 1
        finally:
            self._slots.release()


class SearchQuota:
    """Remaining searches for this run; ``None`` means unlimited."""

    def __init__(self, remaining: Optional[int] = None):
        self.remaining = remaining
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def take(self) -> None:
        if self.exhausted:
            raise DiscoveryFailure("search quota for this run is used up", {"used": self.used})
        self.used += 1
        if self.remaining is not None:
            self.remaining -= 1
