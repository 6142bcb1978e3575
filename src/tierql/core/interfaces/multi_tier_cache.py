"""Multi-tier cache interface."""

from collections.abc import Iterable
from datetime import timedelta
from typing import Protocol

from tierql.core.entities.cache_entry import CachePriority
from tierql.core.entities.metrics import CacheMetrics


class IMultiTierCache(Protocol):
    """Contract the invalidation engine and the read path rely on."""

    async def get(self, key: str) -> bytes | None:
        """Look the key up tier by tier, promoting hits to faster tiers."""
        ...

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
        priority: CachePriority = CachePriority.MEDIUM,
    ) -> None:
        """Write to L1, then best-effort to the slower tiers."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key from every tier."""
        ...

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Remove several keys from every tier in one batched call."""
        ...

    async def clear(self, pattern: str | None = None) -> None:
        """Remove keys matching a glob pattern from every tier, or all keys."""
        ...

    async def keys(self, pattern: str = "*") -> list[str]:
        """Distinct live keys across all tiers."""
        ...

    async def purge_expired(self) -> int:
        """Drop expired entries from every tier."""
        ...

    def get_metrics(self) -> CacheMetrics:
        """Snapshot of per-tier counters."""
        ...
