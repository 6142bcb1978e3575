"""In-memory cache backend implementation."""

import fnmatch
import math
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any

from cachetools import TLRUCache  # type: ignore[import-untyped]

from tierql.core.entities.cache_entry import CacheEntry, CacheTier

# Rough per-entry bookkeeping cost added to key/value sizes
_ENTRY_OVERHEAD = 200


def _time_to_use(key: str, entry: CacheEntry, now: float) -> float:
    return entry.expires_at if entry.expires_at is not None else math.inf


class _EvictionCountingCache(TLRUCache):  # type: ignore[misc]
    """TLRUCache that counts capacity evictions.

    cachetools calls ``popitem`` only when the cache is full, after
    expired items have already been dropped.
    """

    def __init__(self, maxsize: int, timer: Callable[[], float]) -> None:
        super().__init__(maxsize=maxsize, ttu=_time_to_use, timer=timer)
        self.evictions = 0

    def popitem(self) -> tuple[str, Any]:
        item = super().popitem()
        self.evictions += 1
        return item

    def clear(self) -> None:
        # Older cachetools releases clear through popitem()
        evictions = self.evictions
        super().clear()
        self.evictions = evictions


class InMemoryCacheBackend:
    """Process-local cache tier using LRU with per-entry expiry.

    Backed by cachetools' TLRUCache, so every entry carries its own TTL
    and the least recently used entry is evicted when the tier is full.
    Pinned entries are kept beside the LRU and never evicted for room,
    so they do not count against ``maxsize``. The clock is injectable to
    make expiry testable.
    """

    def __init__(
        self,
        maxsize: int = 1000,
        default_ttl: timedelta | None = timedelta(minutes=5),
        tier: CacheTier = CacheTier.L1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory cache backend.

        Args:
            maxsize: Maximum number of unpinned entries held.
            default_ttl: TTL used when set() is called without one.
                None means such entries never expire.
            tier: The tier this backend serves as.
            clock: Returns the current time in seconds.
        """
        self.tier = tier
        self._maxsize = maxsize
        self._default_ttl = default_ttl
        self._clock = clock
        self._cache = _EvictionCountingCache(maxsize=maxsize, timer=clock)
        self._pinned: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the live entry stored under key."""
        pinned = self._live_pinned(key)
        if pinned is not None:
            return pinned
        self._cache.expire()
        entry = self._cache.get(key)
        return entry if isinstance(entry, CacheEntry) else None

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
        pinned: bool = False,
    ) -> None:
        """Store value with optional TTL.

        Args:
            key: The cache key.
            value: The value to store as bytes.
            ttl: Optional time-to-live. If None, uses the default.
            pinned: Keep the entry out of capacity eviction.
        """
        entry = CacheEntry.create(
            key=key,
            value=value,
            tier=self.tier,
            now=self._clock(),
            ttl=ttl if ttl is not None else self._default_ttl,
        )
        if pinned:
            self._cache.pop(key, None)
            self._pinned[key] = entry
        else:
            self._pinned.pop(key, None)
            self._cache[key] = entry

    async def delete(self, key: str) -> bool:
        """Delete cached value.

        Returns:
            True if a live entry existed and was deleted, False otherwise.
        """
        entry = self._pinned.pop(key, None)
        if entry is not None:
            return not entry.is_expired(self._clock())
        try:
            del self._cache[key]
            return True
        except KeyError:
            # TLRUCache raises KeyError for an entry that had already expired,
            # after removing it
            return False

    async def delete_many(self, keys: Iterable[str]) -> int:
        count = 0
        for key in keys:
            if await self.delete(key):
                count += 1
        return count

    async def exists(self, key: str) -> bool:
        return self._live_pinned(key) is not None or key in self._cache

    async def clear(self) -> None:
        """Clear all cached values."""
        self._pinned.clear()
        self._cache.clear()

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob-style pattern.

        Returns:
            Number of keys deleted.
        """
        return await self.delete_many(await self.keys(pattern))

    async def keys(self, pattern: str = "*") -> list[str]:
        self._purge_pinned()
        self._cache.expire()
        return [
            key
            for key in [*self._pinned, *list(self._cache.keys())]
            if fnmatch.fnmatchcase(key, pattern)
        ]

    async def purge_expired(self) -> int:
        return self._purge_pinned() + len(self._cache.expire())

    def memory_usage(self) -> int:
        """Estimate the bytes held by live entries."""
        size = 0
        for key, entry in [*self._pinned.items(), *list(self._cache.items())]:
            size += len(key.encode()) + len(entry.value) + _ENTRY_OVERHEAD
        return size

    @property
    def evictions(self) -> int:
        """Number of entries evicted because the tier was full."""
        return self._cache.evictions

    @property
    def pinned_count(self) -> int:
        """Number of live pinned entries."""
        self._purge_pinned()
        return len(self._pinned)

    def __len__(self) -> int:
        """Return the number of items in the cache."""
        return len(self._pinned) + len(self._cache)

    @property
    def maxsize(self) -> int:
        """Return the maximum size of the cache."""
        return self._maxsize

    def _live_pinned(self, key: str) -> CacheEntry | None:
        entry = self._pinned.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._pinned[key]
            return None
        return entry

    def _purge_pinned(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._pinned.items() if entry.is_expired(now)]
        for key in expired:
            del self._pinned[key]
        return len(expired)
