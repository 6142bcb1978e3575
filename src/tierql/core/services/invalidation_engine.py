"""Cache invalidation engine - orchestrates eviction across both caches."""

import asyncio
import inspect
import logging
import re
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from tierql.core.entities.cache_config import InvalidationConfig
from tierql.core.entities.invalidation import (
    WILDCARD,
    BackendChange,
    ChangeKind,
    InvalidationEvent,
    InvalidationRule,
    InvalidationSource,
)
from tierql.core.entities.metrics import InvalidationMetrics
from tierql.core.interfaces.key_builder import IKeyBuilder
from tierql.core.interfaces.multi_tier_cache import IMultiTierCache
from tierql.core.interfaces.normalized_cache import INormalizedCache
from tierql.core.services.impact_analyzer import MutationImpactAnalyzer
from tierql.infrastructure.key_builders.default import DefaultKeyBuilder
from tierql.utils.dependents import decode_keys

logger = logging.getLogger(__name__)

TTL_SWEEP_OPERATION = "ttl-sweep"
MANUAL_OPERATION = "manual"


async def _run_invalidator(callback: Callable[[Any], Any], params: Any) -> None:
    # Callback may be sync or async
    result = callback(params)
    if inspect.isawaitable(result):
        await result


class CacheInvalidationEngine:
    """Keeps cached query results consistent with backend writes.

    Invalidation is triggered by completed mutations, by backend push
    notifications, by manual calls, and by time. Every public operation
    swallows and logs its errors: a failed invalidation leaves some data
    stale but never fails the write that triggered it.

    Within one invalidation the normalized store is always evicted (and
    garbage collected) before the multi-tier cache, so a reader cannot
    miss in the faster multi-tier cache and then be served stale linked
    data from the normalized store. Separate invalidations are not
    serialized against each other.

    Usage:
        engine = CacheInvalidationEngine(
            analyzer=MutationImpactAnalyzer(),
            normalized_cache=NormalizedCacheAdapter(store),
            multi_tier_cache=MultiTierCache(),
        )
        async with engine:
            await engine.invalidate_from_mutation("updateUser", {"id": "1"}, "T1")
    """

    def __init__(
        self,
        normalized_cache: INormalizedCache,
        multi_tier_cache: IMultiTierCache,
        analyzer: MutationImpactAnalyzer | None = None,
        config: InvalidationConfig | None = None,
        key_builder: IKeyBuilder | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the engine.

        Args:
            normalized_cache: Adapter over the transport's normalized store.
            multi_tier_cache: The L1/L2/L3 cache.
            analyzer: Rule registry. A default one is built from config.
            config: Engine configuration. Uses defaults if not provided.
            key_builder: Builds multi-tier keys; must match the one used by
                the read path.
            timer: Monotonic clock in seconds used to time invalidations.
        """
        self._config = config or InvalidationConfig()
        self._analyzer = analyzer if analyzer is not None else MutationImpactAnalyzer(
            include_defaults=self._config.include_default_rules
        )
        self._normalized = normalized_cache
        self._tiers = multi_tier_cache
        self._key_builder = key_builder or DefaultKeyBuilder()
        self._timer = timer

        self._metrics = InvalidationMetrics()
        self._events: deque[InvalidationEvent] = deque(maxlen=self._config.event_history)

        # Debounced batch deletes
        self._pending: set[str] = set()
        self._batch_handle: asyncio.TimerHandle | None = None

        self._sweep_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def analyzer(self) -> MutationImpactAnalyzer:
        return self._analyzer

    @property
    def config(self) -> InvalidationConfig:
        return self._config

    def register_rule(self, rule: InvalidationRule) -> None:
        """Register or replace an invalidation rule."""
        self._analyzer.register_rule(rule)

    # Mutation and push driven invalidation

    async def invalidate_from_mutation(
        self,
        operation_id: str,
        params: Any = None,
        tenant_id: str | None = None,
    ) -> None:
        """Invalidate what a completed mutation made stale.

        Args:
            operation_id: Name of the mutation.
            params: Variables the mutation ran with.
            tenant_id: Tenant the mutation ran for, if any.
        """
        await self._invalidate_operation(
            operation_id, params, tenant_id, InvalidationSource.MUTATION
        )

    async def invalidate_from_backend_change(
        self,
        change_kind: ChangeKind | str,
        entity_type: str,
        entity_id: str,
        tenant_id: str | None = None,
    ) -> None:
        """Invalidate after a backend push notification.

        The change is reshaped into ``<kind><EntityType>`` with
        ``{"id": entity_id}`` as params and goes through the rule table
        like a mutation.
        """
        try:
            kind = change_kind if isinstance(change_kind, ChangeKind) else ChangeKind(change_kind)
        except ValueError:
            logger.warning(
                "Ignoring backend change with unknown kind %r for %s:%s",
                change_kind,
                entity_type,
                entity_id,
            )
            return

        change = BackendChange(kind, entity_type, str(entity_id), tenant_id)
        await self._invalidate_operation(
            change.operation_id,
            {"id": change.entity_id},
            change.tenant_id,
            InvalidationSource.BACKEND_PUSH,
        )

    async def handle_backend_change(self, change: BackendChange) -> None:
        await self.invalidate_from_backend_change(
            change.change_kind,
            change.entity_type,
            change.entity_id,
            change.tenant_id,
        )

    def notify_mutation(
        self,
        operation_id: str,
        params: Any = None,
        tenant_id: str | None = None,
    ) -> "asyncio.Task[None]":
        """Schedule invalidate_from_mutation without waiting for it.

        The task is tracked and awaited by close().
        """
        return self._spawn(self.invalidate_from_mutation(operation_id, params, tenant_id))

    # Manual invalidation

    async def invalidate_manual(
        self,
        queries: Iterable[str] | None = None,
        types: Iterable[str] | None = None,
        keys: Iterable[str] | None = None,
        tenant_id: str | None = None,
        pattern: str | None = None,
    ) -> None:
        """Administrative invalidation.

        Args:
            queries: Root query names to evict from both caches.
            types: Entity type names to evict from both caches.
            keys: Multi-tier cache keys to delete verbatim.
            tenant_id: Scope query/type keys and pattern matches to a tenant.
            pattern: Regular expression searched in normalized record ids
                and multi-tier keys.
        """
        started = self._timer()
        failures = 0
        context = {"operation_id": MANUAL_OPERATION, "tenant_id": tenant_id}
        query_set = frozenset(queries or ())
        type_set = frozenset(types or ())

        try:
            if query_set or type_set:
                failures += await self._evict_normalized(query_set, type_set, tenant_id, context)
                failures += await self._evict_tiers(query_set, type_set, tenant_id, context)

            key_list = list(keys or ())
            if key_list:
                failures += await self._attempt(
                    "delete keys", context, self._tiers.delete_many(key_list)
                )

            if pattern:
                failures += await self._evict_pattern(pattern, tenant_id, context)
        except Exception:
            logger.exception("Manual cache invalidation failed", extra=context)
            failures += 1

        self._record(InvalidationSource.MANUAL, MANUAL_OPERATION, tenant_id, started, failures)

    # Batched invalidation

    def queue_invalidation(self, key: str) -> None:
        """Queue a multi-tier key for a debounced batch delete.

        Each call restarts the debounce timer; when it fires, every queued
        key is deleted in one call. Must be called from a running loop.
        """
        self._pending.add(key)
        if self._batch_handle is not None:
            self._batch_handle.cancel()
        loop = asyncio.get_running_loop()
        self._batch_handle = loop.call_later(
            self._config.debounce_delay.total_seconds(),
            self._on_debounce_elapsed,
        )

    async def flush(self) -> None:
        """Delete queued keys now instead of waiting for the timer."""
        if self._batch_handle is not None:
            self._batch_handle.cancel()
            self._batch_handle = None
        await self._process_batch()

    @property
    def pending_keys(self) -> frozenset[str]:
        return frozenset(self._pending)

    # Time driven invalidation

    async def invalidate_expired(self) -> None:
        """Ask the multi-tier cache to drop expired entries.

        A maintenance safety net: tiers already expire entries lazily when
        they are read.
        """
        started = self._timer()
        context = {"operation_id": TTL_SWEEP_OPERATION, "tenant_id": None}
        failures = 0
        try:
            removed = await self._tiers.purge_expired()
            if removed:
                logger.debug("TTL sweep removed %d expired entries", removed)
        except Exception:
            logger.exception("Time-based invalidation failed", extra=context)
            failures += 1
        self._record(InvalidationSource.TTL, TTL_SWEEP_OPERATION, None, started, failures)

    def start(self) -> None:
        """Start the periodic TTL sweep. Must be called from a running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def close(self) -> None:
        """Stop the sweep, flush queued keys and wait for scheduled work."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        await self.flush()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def __aenter__(self) -> "CacheInvalidationEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()

    # Metrics

    def get_metrics(self) -> InvalidationMetrics:
        return self._metrics.snapshot()

    def reset_metrics(self) -> None:
        self._metrics = InvalidationMetrics()

    def recent_events(self) -> list[InvalidationEvent]:
        """Most recent invalidations, oldest first."""
        return list(self._events)

    # Internals

    async def _invalidate_operation(
        self,
        operation_id: str,
        params: Any,
        tenant_id: str | None,
        source: InvalidationSource,
    ) -> None:
        started = self._timer()
        failures = 0
        context = {"operation_id": operation_id, "tenant_id": tenant_id}

        try:
            impact = self._analyzer.analyze_impact(operation_id, params)

            if impact.custom_invalidator is not None:
                failures += await self._attempt(
                    "custom invalidator",
                    context,
                    _run_invalidator(impact.custom_invalidator, params),
                )

            scoped_tenant = tenant_id if impact.tenant_specific else None
            # Normalized store first; see class docstring
            failures += await self._evict_normalized(
                impact.queries, impact.types, scoped_tenant, context
            )
            failures += await self._evict_tiers(
                impact.queries, impact.types, scoped_tenant, context
            )

            logger.debug(
                "Cache invalidated for %s",
                operation_id,
                extra={
                    **context,
                    "queries": sorted(impact.queries),
                    "types": sorted(impact.types),
                    "tenant_specific": impact.tenant_specific,
                },
            )
        except Exception:
            logger.exception("Cache invalidation failed for %s", operation_id, extra=context)
            failures += 1

        self._record(source, operation_id, tenant_id, started, failures)

    async def _evict_normalized(
        self,
        queries: frozenset[str],
        types: frozenset[str],
        tenant_id: str | None,
        context: dict[str, Any],
    ) -> int:
        if WILDCARD in queries or WILDCARD in types:
            return await self._attempt("normalized reset", context, self._normalized.reset())

        failures = 0
        for name in sorted(queries):
            failures += await self._attempt(
                f"evict query {name}", context, self._normalized.evict_query(name)
            )
            if tenant_id:
                scoped = self._key_builder.scoped(name, tenant_id)
                failures += await self._attempt(
                    f"evict query {scoped}", context, self._normalized.evict_query(scoped)
                )
        for type_name in sorted(types):
            failures += await self._attempt(
                f"evict type {type_name}",
                context,
                self._normalized.evict_all_of_type(type_name),
            )
        if queries or types:
            failures += await self._attempt(
                "normalized garbage collection", context, self._normalized.garbage_collect()
            )
        return failures

    async def _evict_tiers(
        self,
        queries: frozenset[str],
        types: frozenset[str],
        tenant_id: str | None,
        context: dict[str, Any],
    ) -> int:
        if WILDCARD in queries or WILDCARD in types:
            return await self._attempt("multi-tier clear", context, self._tiers.clear())

        names = sorted(set(queries) | {type_name.lower() for type_name in types})
        keys: list[str] = []
        for name in names:
            keys.append(self._key_builder.scoped(name))
            if tenant_id:
                keys.append(self._key_builder.scoped(name, tenant_id))
        if not keys:
            return 0

        dependents, failures = await self._dependents(keys, context)
        failures += await self._attempt(
            "multi-tier delete", context, self._tiers.delete_many([*keys, *dependents])
        )
        for key in keys:
            failures += await self._attempt(
                f"multi-tier delete variants of {key}",
                context,
                self._tiers.clear(self._key_builder.variants_pattern(key)),
            )
        return failures

    async def _dependents(
        self,
        keys: list[str],
        context: dict[str, Any],
    ) -> tuple[list[str], int]:
        """Result keys indexed under keys, and the number of failed lookups."""
        found: set[str] = set()
        failures = 0
        for key in keys:
            index_key = self._key_builder.dependents_key(key)
            try:
                raw = await self._tiers.get(index_key)
                if raw is not None:
                    found.update(decode_keys(raw))
            except Exception:
                logger.exception("Reading index entry %s failed", index_key, extra=context)
                failures += 1
        return sorted(found - set(keys)), failures

    async def _evict_pattern(
        self,
        pattern: str,
        tenant_id: str | None,
        context: dict[str, Any],
    ) -> int:
        try:
            regex = re.compile(pattern)
        except re.error:
            logger.warning("Ignoring invalid invalidation pattern %r", pattern, extra=context)
            return 1

        failures = 0
        try:
            cache_ids = [i for i in await self._normalized.cache_ids() if regex.search(i)]
        except Exception:
            logger.exception("Listing normalized records failed", extra=context)
            cache_ids = []
            failures += 1
        for cache_id in cache_ids:
            failures += await self._attempt(
                f"evict record {cache_id}", context, self._normalized.evict_id(cache_id)
            )
        if cache_ids:
            failures += await self._attempt(
                "normalized garbage collection", context, self._normalized.garbage_collect()
            )

        try:
            keys = [key for key in await self._tiers.keys() if regex.search(key)]
        except Exception:
            logger.exception("Listing multi-tier keys failed", extra=context)
            return failures + 1
        if tenant_id:
            keys = [key for key in keys if self._key_builder.belongs_to(key, tenant_id)]
        if keys:
            failures += await self._attempt(
                "multi-tier delete", context, self._tiers.delete_many(keys)
            )
        return failures

    async def _attempt(
        self,
        description: str,
        context: dict[str, Any],
        awaitable: Awaitable[Any],
    ) -> int:
        """Await one eviction step, logging instead of raising.

        Returns:
            1 if the step failed, 0 otherwise.
        """
        try:
            await awaitable
            return 0
        except Exception:
            logger.exception(
                "Cache invalidation step failed: %s",
                description,
                extra=context,
            )
            return 1

    def _record(
        self,
        source: InvalidationSource,
        operation_id: str,
        tenant_id: str | None,
        started: float,
        failures: int,
    ) -> None:
        duration_ms = (self._timer() - started) * 1000
        now = datetime.now(timezone.utc)
        self._metrics.record(
            source,
            duration_ms,
            now,
            smoothing=self._config.metrics_smoothing,
            failures=failures,
        )
        self._events.append(
            InvalidationEvent(
                source=source,
                operation_id=operation_id,
                timestamp=now,
                tenant_id=tenant_id,
                duration_ms=duration_ms,
                failures=failures,
            )
        )

    def _on_debounce_elapsed(self) -> None:
        self._batch_handle = None
        self._spawn(self._process_batch())

    async def _process_batch(self) -> None:
        if not self._pending:
            return
        keys = sorted(self._pending)
        self._pending.clear()
        try:
            await self._tiers.delete_many(keys)
            logger.debug("Batch invalidated %d key(s)", len(keys))
        except Exception:
            logger.exception(
                "Batch invalidation failed",
                extra={"operation_id": "batch", "tenant_id": None, "keys": keys},
            )

    async def _sweep_forever(self) -> None:
        interval = self._config.sweep_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            await self.invalidate_expired()

    def _spawn(self, coroutine: Awaitable[Any]) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coroutine)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
