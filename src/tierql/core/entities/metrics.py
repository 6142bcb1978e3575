"""Metrics entities for the cache and the invalidation engine."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from tierql.core.entities.cache_entry import CacheTier
from tierql.core.entities.invalidation import InvalidationSource


@dataclass
class TierMetrics:
    """Counters for a single cache tier."""

    hits: int = 0
    misses: int = 0
    errors: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


@dataclass
class CacheMetrics:
    """Aggregated metrics of the multi-tier cache.

    ``memory_usage`` is an estimate in bytes of what L1 holds.
    ``average_response_time_ms`` is an exponential moving average of
    ``get`` latency.
    ``critical_keys`` counts the high-priority entries pinned in L1.
    """

    tiers: dict[CacheTier, TierMetrics] = field(default_factory=dict)
    total_requests: int = 0
    memory_usage: int = 0
    average_response_time_ms: float = 0.0
    critical_keys: int = 0

    def tier(self, tier: CacheTier) -> TierMetrics:
        return self.tiers.setdefault(tier, TierMetrics())

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a JSON-friendly dictionary for operators."""
        result: dict[str, Any] = {
            "total_requests": self.total_requests,
            "memory_usage": self.memory_usage,
            "average_response_time_ms": round(self.average_response_time_ms, 3),
            "critical_keys": self.critical_keys,
        }
        for tier, metrics in self.tiers.items():
            prefix = tier.value.lower()
            result[f"{prefix}_hits"] = metrics.hits
            result[f"{prefix}_misses"] = metrics.misses
            result[f"{prefix}_errors"] = metrics.errors
            result[f"{prefix}_evictions"] = metrics.evictions
            result[f"{prefix}_size"] = metrics.size
        return result


@dataclass
class InvalidationMetrics:
    """Running counters of the invalidation engine.

    Push-driven invalidations count as mutation based, since they go
    through the same rule table.
    """

    total_invalidations: int = 0
    mutation_based: int = 0
    time_based: int = 0
    manual: int = 0
    average_invalidation_time_ms: float = 0.0
    last_invalidation: datetime | None = None
    failures: int = 0

    def record(
        self,
        source: InvalidationSource,
        duration_ms: float,
        at: datetime,
        smoothing: float = 0.1,
        failures: int = 0,
    ) -> None:
        """Account for one finished invalidation.

        Args:
            source: What triggered the invalidation.
            duration_ms: How long it took.
            at: When it finished.
            smoothing: Weight of the new sample in the moving average.
            failures: Number of errors caught while running it.
        """
        self.total_invalidations += 1
        self.last_invalidation = at
        self.failures += failures

        if source in (InvalidationSource.MUTATION, InvalidationSource.BACKEND_PUSH):
            self.mutation_based += 1
        elif source == InvalidationSource.TTL:
            self.time_based += 1
        else:
            self.manual += 1

        self.average_invalidation_time_ms = (
            self.average_invalidation_time_ms * (1 - smoothing) + duration_ms * smoothing
        )

    def snapshot(self) -> "InvalidationMetrics":
        return replace(self)
