"""Cache backend interface."""

from collections.abc import Iterable
from datetime import timedelta
from typing import Protocol

from tierql.core.entities.cache_entry import CacheEntry, CacheTier


class ICacheBackend(Protocol):
    """Contract for a single storage tier of the multi-tier cache.

    Methods are async so that persistent and remote tiers can suspend on
    I/O. A backend must never return an entry whose expiry has passed;
    it removes such entries lazily when they are accessed.
    """

    tier: CacheTier

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the live entry stored under key.

        Args:
            key: The cache key to retrieve.

        Returns:
            The entry, or None if not found or expired.
        """
        ...

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
    ) -> None:
        """Store value with optional TTL.

        Args:
            key: The cache key.
            value: The value to store as bytes.
            ttl: Optional time-to-live. If None, uses backend default.
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete cached value.

        Returns:
            True if the key existed and was deleted, False otherwise.
        """
        ...

    async def delete_many(self, keys: Iterable[str]) -> int:
        """Delete several keys at once.

        Returns:
            Number of keys that existed and were deleted.
        """
        ...

    async def exists(self, key: str) -> bool:
        """Check if a live entry exists for key."""
        ...

    async def clear(self) -> None:
        """Clear all cached values held by this tier."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob-style pattern.

        Returns:
            Number of keys deleted.
        """
        ...

    async def keys(self, pattern: str = "*") -> list[str]:
        """List live keys matching a glob-style pattern."""
        ...

    async def purge_expired(self) -> int:
        """Proactively drop expired entries.

        Returns:
            Number of entries removed.
        """
        ...
