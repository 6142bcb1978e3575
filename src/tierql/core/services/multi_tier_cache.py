"""Multi-tier cache - L1/L2/L3 lookup with promotion."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, replace
from datetime import timedelta

from tierql.core.entities.cache_entry import CachePriority, CacheTier
from tierql.core.entities.metrics import CacheMetrics, TierMetrics
from tierql.core.interfaces.cache_backend import ICacheBackend
from tierql.exceptions import TierOperationError
from tierql.infrastructure.backends.memory import InMemoryCacheBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WarmupItem:
    """A key to preload, with the loader that produces its value."""

    key: str
    loader: Callable[[], Awaitable[bytes]]
    ttl: timedelta | None = None
    priority: CachePriority = CachePriority.MEDIUM


class MultiTierCache:
    """Key/value cache layered over up to three tiers.

    Reads try L1, then L2, then L3. A hit on a slower tier is written
    into every faster tier before it is returned. Writes go to L1 first;
    the slower tiers are written best-effort and their failures never
    fail the write.

    Usage:
        cache = MultiTierCache(
            l1=InMemoryCacheBackend(maxsize=1000),
            l2=SqliteCacheBackend("cache.db"),
            l3=RedisCacheBackend("redis://localhost:6379"),
        )
        await cache.set("orders_T1", payload, ttl=timedelta(minutes=5))
        payload = await cache.get("orders_T1")
    """

    def __init__(
        self,
        l1: InMemoryCacheBackend | None = None,
        l2: ICacheBackend | None = None,
        l3: ICacheBackend | None = None,
        clock: Callable[[], float] = time.time,
        response_time_smoothing: float = 0.1,
    ) -> None:
        """Initialize the multi-tier cache.

        Args:
            l1: Process-local tier. An in-memory backend is created if omitted.
            l2: Optional persistent tier.
            l3: Optional shared/remote tier.
            clock: Returns the current time in seconds, used to compute the
                remaining TTL of promoted entries.
            response_time_smoothing: Weight of the newest get() latency in
                the moving average.
        """
        self._l1 = l1 if l1 is not None else InMemoryCacheBackend(clock=clock)
        self._tiers: list[tuple[CacheTier, ICacheBackend]] = [(CacheTier.L1, self._l1)]
        if l2 is not None:
            self._tiers.append((CacheTier.L2, l2))
        if l3 is not None:
            self._tiers.append((CacheTier.L3, l3))

        self._clock = clock
        self._smoothing = response_time_smoothing
        self._metrics = CacheMetrics(tiers={tier: TierMetrics() for tier, _ in self._tiers})
        self._warming: set[str] = set()

    @property
    def tiers(self) -> list[CacheTier]:
        return [tier for tier, _ in self._tiers]

    def backend(self, tier: CacheTier) -> ICacheBackend:
        """Return the backend serving ``tier``.

        Raises:
            KeyError: If the tier is not configured.
        """
        for candidate, backend in self._tiers:
            if candidate == tier:
                return backend
        raise KeyError(tier)

    async def get(self, key: str) -> bytes | None:
        """Look the key up tier by tier.

        Returns:
            The cached bytes, or None if no tier holds a live entry.
        """
        started = time.perf_counter()
        self._metrics.total_requests += 1
        try:
            for index, (tier, backend) in enumerate(self._tiers):
                try:
                    entry = await backend.get(key)
                except Exception:
                    logger.warning("Cache tier %s failed reading %s", tier.value, key, exc_info=True)
                    self._metrics.tier(tier).errors += 1
                    entry = None

                if entry is None:
                    self._metrics.tier(tier).misses += 1
                    continue

                self._metrics.tier(tier).hits += 1
                if index > 0:
                    await self._promote(key, entry.value, entry.remaining_ttl(self._clock()), index)
                return entry.value
            return None
        finally:
            self._record_response_time(started)

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
        priority: CachePriority = CachePriority.MEDIUM,
    ) -> None:
        """Write to L1, then best-effort to the slower tiers.

        Args:
            key: The cache key.
            value: The value to store as bytes.
            ttl: Optional time-to-live. If None, each tier uses its default.
            priority: HIGH pins the entry in L1 so that capacity eviction
                never drops it.
        """
        await self._l1.set(key, value, ttl, pinned=priority is CachePriority.HIGH)
        await self._write_best_effort(self._tiers[1:], key, value, ttl)

    async def delete(self, key: str) -> None:
        """Remove key from every tier.

        Raises:
            TierOperationError: If any tier failed; the others were applied.
        """
        await self._on_every_tier("delete", lambda backend: backend.delete(key))

    async def delete_many(self, keys: Iterable[str]) -> None:
        """Remove several keys from every tier in one batched call.

        Raises:
            TierOperationError: If any tier failed; the others were applied.
        """
        key_list = list(keys)
        if not key_list:
            return
        await self._on_every_tier("delete_many", lambda backend: backend.delete_many(key_list))

    async def clear(self, pattern: str | None = None) -> None:
        """Remove keys matching a glob pattern from every tier, or everything.

        Raises:
            TierOperationError: If any tier failed; the others were applied.
        """
        if pattern is None:
            await self._on_every_tier("clear", lambda backend: backend.clear())
        else:
            await self._on_every_tier(
                "clear", lambda backend: backend.delete_pattern(pattern)
            )

    async def clear_tenant(self, tenant_id: str, patterns: Iterable[str]) -> None:
        """Remove every key scoped to a tenant.

        Args:
            tenant_id: The tenant whose keys go.
            patterns: Globs matching that tenant's keys, as produced by the
                key builder.
        """
        for pattern in patterns:
            await self.clear(pattern)
        logger.info("Cleared multi-tier cache for tenant %s", tenant_id)

    async def keys(self, pattern: str = "*") -> list[str]:
        """Distinct live keys across all tiers.

        Tiers that fail to list are skipped.
        """
        found: dict[str, None] = {}
        for tier, backend in self._tiers:
            try:
                for key in await backend.keys(pattern):
                    found.setdefault(key)
            except Exception:
                logger.warning("Cache tier %s failed listing keys", tier.value, exc_info=True)
                self._metrics.tier(tier).errors += 1
        return list(found)

    async def purge_expired(self) -> int:
        """Drop expired entries from every tier.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for tier, backend in self._tiers:
            try:
                removed += await backend.purge_expired()
            except Exception:
                logger.warning("Cache tier %s failed purging expired entries", tier.value, exc_info=True)
                self._metrics.tier(tier).errors += 1
        return removed

    async def warm(self, items: Iterable[WarmupItem]) -> int:
        """Preload keys concurrently.

        Keys already being warmed are skipped. A failing loader is logged
        and does not stop the others.

        Returns:
            Number of keys written.
        """

        async def warm_one(item: WarmupItem) -> bool:
            if item.key in self._warming:
                return False
            self._warming.add(item.key)
            try:
                value = await item.loader()
                await self.set(item.key, value, item.ttl, item.priority)
                return True
            except Exception:
                logger.warning("Cache warming failed for key %s", item.key, exc_info=True)
                return False
            finally:
                self._warming.discard(item.key)

        results = await asyncio.gather(*(warm_one(item) for item in items))
        return sum(1 for written in results if written)

    def get_metrics(self) -> CacheMetrics:
        """Snapshot of per-tier counters and the L1 memory estimate."""
        tiers = {tier: replace(metrics) for tier, metrics in self._metrics.tiers.items()}
        l1 = tiers[CacheTier.L1]
        l1.evictions = self._l1.evictions
        l1.size = len(self._l1)
        for tier, backend in self._tiers[1:]:
            tiers[tier].evictions = getattr(backend, "evictions", 0)
        return CacheMetrics(
            tiers=tiers,
            total_requests=self._metrics.total_requests,
            memory_usage=self._l1.memory_usage(),
            average_response_time_ms=self._metrics.average_response_time_ms,
            critical_keys=self._l1.pinned_count,
        )

    def reset_metrics(self) -> None:
        self._metrics = CacheMetrics(tiers={tier: TierMetrics() for tier, _ in self._tiers})

    async def _promote(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None,
        hit_index: int,
    ) -> None:
        # L1 first so the very next get() is served from memory
        await self._l1.set(key, value, ttl)
        await self._write_best_effort(self._tiers[1:hit_index], key, value, ttl)

    async def _write_best_effort(
        self,
        tiers: list[tuple[CacheTier, ICacheBackend]],
        key: str,
        value: bytes,
        ttl: timedelta | None,
    ) -> None:
        if not tiers:
            return
        results = await asyncio.gather(
            *(backend.set(key, value, ttl) for _, backend in tiers),
            return_exceptions=True,
        )
        for (tier, _), result in zip(tiers, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Cache tier %s failed writing %s: %s", tier.value, key, result
                )
                self._metrics.tier(tier).errors += 1

    async def _on_every_tier(
        self,
        operation: str,
        call: Callable[[ICacheBackend], Awaitable[object]],
    ) -> None:
        errors: dict[CacheTier, BaseException] = {}
        for tier, backend in self._tiers:
            try:
                await call(backend)
            except Exception as e:
                self._metrics.tier(tier).errors += 1
                errors[tier] = e
        if errors:
            raise TierOperationError(operation, errors)

    def _record_response_time(self, started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._metrics.average_response_time_ms = (
            self._metrics.average_response_time_ms * (1 - self._smoothing)
            + elapsed_ms * self._smoothing
        )
