"""
Ephemeral TTL Cache

Process-level memoization for upstream fetches (catalogs, geocoding,
sponsor lookups). Two variants:

- TTLCache: one value, `await cache.wrap(fetcher)`
- KeyedTTLCache: one value per key, `await cache.wrap(fetcher, key)`

Design Decisions:
- An entry is fresh while `now - timestamp < ttl_ms`; stale entries are
  refetched and overwritten, never evicted otherwise
- A failed fetch propagates to every waiting caller and leaves the previous
  entry untouched
- Concurrent misses for the same key share one in-flight fetch
  (single-flight); the fetch runs as its own task so a cancelled caller
  does not cancel it for the others
- invalidate/clear detach in-flight fetches: their callers still get the
  result, but it is not stored, so a fetch started before a revalidation
  cannot write pre-revalidation data back
- Caches are explicitly constructed with an injectable clock
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[T]]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float  # ms, from the cache clock


class KeyedTTLCache(Generic[T]):
    """TTL cache with an independent timer per key."""

    def __init__(self, ttl_ms: int, clock: Optional[Callable[[], float]] = None):
        self.ttl_ms = ttl_ms
        self._clock = clock or _monotonic_ms
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._inflight: dict[Hashable, asyncio.Task] = {}

    async def wrap(self, fetcher: Fetcher, key: Hashable) -> T:
        """
        Return the cached value for `key`, calling `fetcher` when it is stale.

        Args:
            fetcher: Zero-argument coroutine function producing the value
            key: Cache key

        Returns:
            Fresh cached value or the newly fetched one

        Raises:
            Whatever `fetcher` raises
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.data

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(fetcher, key))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def get(self, key: Hashable) -> Optional[T]:
        """Fresh value for `key` without fetching, None otherwise."""
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            return entry.data
        return None

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self._inflight.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.timestamp < self.ttl_ms

    async def _refresh(self, fetcher: Fetcher, key: Hashable) -> T:
        data = await fetcher()
        # Only the fetch still registered for the key may store its result
        if self._inflight.get(key) is asyncio.current_task():
            self._entries[key] = CacheEntry(data=data, timestamp=self._clock())
        return data

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the outcome as retrieved when every caller went away
            task.exception()


class TTLCache(Generic[T]):
    """Single-value TTL cache."""

    _KEY = "__value__"

    def __init__(self, ttl_ms: int, clock: Optional[Callable[[], float]] = None):
        self._store: KeyedTTLCache[T] = KeyedTTLCache(ttl_ms, clock=clock)

    @property
    def ttl_ms(self) -> int:
        return self._store.ttl_ms

    async def wrap(self, fetcher: Fetcher) -> T:
        return await self._store.wrap(fetcher, self._KEY)

    def get(self) -> Optional[T]:
        return self._store.get(self._KEY)

    def clear(self) -> None:
        self._store.clear()
