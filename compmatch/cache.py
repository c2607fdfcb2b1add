from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """
    Small async-safe TTL cache.

    Entries expire ``ttl`` seconds after being stored; an expired entry is a
    miss and is dropped on read. When ``max_entries`` is reached the oldest
    insertion is evicted. ``clock`` is injectable so tests can move time.
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._data: "OrderedDict[Hashable, Tuple[float, V]]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: Hashable) -> Optional[V]:
        async with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    async def set(self, key: Hashable, value: V) -> None:
        if self.ttl <= 0 or self.max_entries <= 0:
            return
        async with self._lock:
            if key in self._data:
                del self._data[key]
            self._data[key] = (self._clock() + self.ttl, value)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()
