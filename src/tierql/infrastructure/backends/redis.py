"""Redis cache backend implementation."""

import glob
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any, Optional

import redis.asyncio as redis

from tierql.core.entities.cache_entry import CacheEntry, CacheTier


class RedisCacheBackend:
    """Shared cache tier stored in Redis.

    The natural L3 tier: shared between processes and sessions, slowest
    and largest. Redis expires keys on its own, so lazy expiry and
    purge_expired() are no-ops here.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str = "tierql",
        default_ttl: Optional[timedelta] = timedelta(hours=1),
        tier: CacheTier = CacheTier.L3,
        client: Any | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the Redis cache backend.

        Args:
            redis_url: Redis connection URL.
            key_prefix: Prefix for all cache keys.
            default_ttl: TTL used when set() is called without one.
            tier: The tier this backend serves as.
            client: An existing redis.asyncio client to use instead of
                connecting to redis_url.
            clock: Returns the current time in epoch seconds.
        """
        self.tier = tier
        self._redis: redis.Redis = client or redis.from_url(redis_url)  # type: ignore
        self._key_prefix = key_prefix
        self._default_ttl = default_ttl
        self._clock = clock

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Retrieve the entry stored under key.

        The remaining TTL is read in the same round trip so that the
        entry can be promoted to faster tiers without outliving Redis.
        """
        async with self._redis.pipeline(transaction=False) as pipe:
            pipe.get(self._prefixed_key(key))
            pipe.pttl(self._prefixed_key(key))
            value, pttl = await pipe.execute()

        if value is None:
            return None

        now = self._clock()
        # PTTL is -1 for keys without expiry
        expires_at = now + pttl / 1000 if pttl is not None and pttl >= 0 else None
        return CacheEntry(
            key=key,
            value=value,
            tier=self.tier,
            written_at=now,
            expires_at=expires_at,
        )

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: Optional[timedelta] = None,
    ) -> None:
        """Store value with optional TTL.

        Args:
            key: The cache key.
            value: The value to store as bytes.
            ttl: Optional time-to-live. If None, uses default.
        """
        prefixed_key = self._prefixed_key(key)
        effective_ttl = ttl if ttl is not None else self._default_ttl

        if effective_ttl is not None:
            milliseconds = max(int(effective_ttl.total_seconds() * 1000), 1)
            await self._redis.psetex(prefixed_key, milliseconds, value)
        else:
            await self._redis.set(prefixed_key, value)

    async def delete(self, key: str) -> bool:
        result = await self._redis.delete(self._prefixed_key(key))
        return result > 0

    async def delete_many(self, keys: Iterable[str]) -> int:
        prefixed = [self._prefixed_key(key) for key in keys]
        if not prefixed:
            return 0
        return int(await self._redis.delete(*prefixed))

    async def exists(self, key: str) -> bool:
        result = await self._redis.exists(self._prefixed_key(key))
        return result > 0

    async def clear(self) -> None:
        """Clear all cached values with our prefix.

        Note: This only clears keys with our prefix, not the entire Redis DB.
        """
        await self._delete_by_pattern(self._prefixed_pattern("*"))

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob-style pattern.

        The pattern applies to unprefixed keys.
        """
        return await self._delete_by_pattern(self._prefixed_pattern(pattern))

    async def keys(self, pattern: str = "*") -> list[str]:
        found: list[str] = []
        async for raw in self._redis.scan_iter(match=self._prefixed_pattern(pattern), count=100):
            found.append(self._unprefixed_key(raw))
        return found

    async def purge_expired(self) -> int:
        return 0

    async def _delete_by_pattern(self, pattern: str) -> int:
        """Delete keys matching a pattern using SCAN.

        Uses SCAN instead of KEYS for production safety.

        Args:
            pattern: Redis glob pattern, already prefixed.

        Returns:
            Number of keys deleted.
        """
        count = 0
        cursor = 0

        while True:
            cursor, keys = await self._redis.scan(cursor, match=pattern, count=100)

            if keys:
                deleted = await self._redis.delete(*keys)
                count += deleted

            if cursor == 0:
                break

        return count

    def _prefixed_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    def _prefixed_pattern(self, pattern: str) -> str:
        # Prefix is literal; only the pattern part is a glob
        return f"{glob.escape(self._key_prefix)}:{pattern}"

    def _unprefixed_key(self, raw: bytes | str) -> str:
        key = raw.decode() if isinstance(raw, bytes) else raw
        return key[len(self._key_prefix) + 1:]

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._redis.aclose()

    async def __aenter__(self) -> "RedisCacheBackend":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()
