"""Cache entry entity."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class CacheTier(Enum):
    """Storage tier of the multi-tier cache.

    L1: process-local memory, fastest and smallest.
    L2: persisted across reloads, larger.
    L3: shared/remote, slowest and largest.
    """

    L1 = "L1"
    L2 = "L2"
    L3 = "L3"


class CachePriority(Enum):
    """Eviction priority of an L1 entry.

    HIGH entries are never evicted to make room; they leave L1 only by
    expiry, deletion or clear.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class CacheEntry:
    """Immutable cache entry value object.

    Timestamps are seconds on the clock of the tier that produced the
    entry (epoch seconds for the bundled backends).
    """

    key: str
    value: bytes
    tier: CacheTier
    written_at: float
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        """Check whether the entry is past its expiry at ``now``."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at

    def remaining_ttl(self, now: float) -> timedelta | None:
        """Time left before expiry, or None if the entry never expires."""
        if self.expires_at is None:
            return None
        return timedelta(seconds=max(self.expires_at - now, 0.0))

    @classmethod
    def create(
        cls,
        key: str,
        value: bytes,
        tier: CacheTier,
        now: float,
        ttl: timedelta | None = None,
    ) -> "CacheEntry":
        """Factory method to create a new cache entry.

        Args:
            key: The cache key.
            value: The serialized value.
            tier: The tier holding the entry.
            now: Current time on the tier's clock.
            ttl: Optional time-to-live. None means the entry never expires.

        Returns:
            A new CacheEntry instance.
        """
        return cls(
            key=key,
            value=value,
            tier=tier,
            written_at=now,
            expires_at=now + ttl.total_seconds() if ttl is not None else None,
        )
