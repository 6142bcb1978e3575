"""TierQL - Client-side cache invalidation for GraphQL applications.

Keeps two caches consistent with backend writes: the transport client's
normalized result store, and a key/value cache layered over an in-memory
L1, a SQLite L2 and a Redis L3. Mutations, backend push notifications,
manual requests and a periodic TTL sweep all feed one invalidation
engine, driven by a table of rules mapping each write operation to the
queries and entity types it makes stale.

Example:
    from tierql import (
        CacheInvalidationEngine,
        DefaultKeyBuilder,
        InMemoryNormalizedStore,
        JsonSerializer,
        NormalizedCacheAdapter,
        QueryCache,
        TieredCacheConfig,
        build_multi_tier_cache,
    )

    tiers = build_multi_tier_cache(
        TieredCacheConfig(l2_path="cache.db", l3_url="redis://localhost:6379")
    )
    store = InMemoryNormalizedStore()
    key_builder = DefaultKeyBuilder()

    queries = QueryCache(tiers, key_builder, JsonSerializer(), store=store)
    engine = CacheInvalidationEngine(
        normalized_cache=NormalizedCacheAdapter(store),
        multi_tier_cache=tiers,
        key_builder=key_builder,
    )

    async with engine:
        data = await queries.fetch(
            "query { orders { __typename id status } }",
            loader=run_orders_query,
            tenant_id="T1",
        )
        await engine.invalidate_from_mutation("updateOrder", {"id": "123"}, "T1")

Custom rules:
    from tierql import InvalidationRule

    engine.register_rule(
        InvalidationRule.create(
            "shipOrder",
            queries=["orders", "shipments"],
            types=["Order", "Shipment"],
        )
    )
"""

from tierql.adapters import NormalizedCacheAdapter
from tierql.core.entities import (
    WILDCARD,
    BackendChange,
    CacheEntry,
    CacheMetrics,
    CachePriority,
    CacheTier,
    ChangeKind,
    ImpactResult,
    InvalidationConfig,
    InvalidationEvent,
    InvalidationMetrics,
    InvalidationRule,
    InvalidationSource,
    RuleOrigin,
    TieredCacheConfig,
    TierMetrics,
)
from tierql.core.interfaces import (
    ICacheBackend,
    IKeyBuilder,
    IMultiTierCache,
    INormalizedCache,
    INormalizedStore,
    ISerializer,
)
from tierql.core.services import (
    CacheInvalidationEngine,
    MultiTierCache,
    MutationImpactAnalyzer,
    QueryCache,
    WarmupItem,
    default_rules,
)
from tierql.decorators import cached, invalidates
from tierql.exceptions import TierOperationError, TierQLError
from tierql.infrastructure import (
    DefaultKeyBuilder,
    InMemoryCacheBackend,
    InMemoryNormalizedStore,
    JsonSerializer,
    RedisCacheBackend,
    SqliteCacheBackend,
)
from tierql.infrastructure.factory import build_key_builder, build_multi_tier_cache
from tierql.tenancy import get_current_tenant, set_current_tenant, tenant_context

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core entities
    "CacheEntry",
    "CachePriority",
    "CacheTier",
    "TieredCacheConfig",
    "InvalidationConfig",
    "WILDCARD",
    "BackendChange",
    "ChangeKind",
    "ImpactResult",
    "InvalidationEvent",
    "InvalidationRule",
    "InvalidationSource",
    "RuleOrigin",
    "CacheMetrics",
    "InvalidationMetrics",
    "TierMetrics",
    # Core interfaces
    "ICacheBackend",
    "IKeyBuilder",
    "IMultiTierCache",
    "INormalizedCache",
    "INormalizedStore",
    "ISerializer",
    # Core services
    "CacheInvalidationEngine",
    "MultiTierCache",
    "MutationImpactAnalyzer",
    "QueryCache",
    "WarmupItem",
    "default_rules",
    # Infrastructure implementations
    "InMemoryCacheBackend",
    "SqliteCacheBackend",
    "RedisCacheBackend",
    "DefaultKeyBuilder",
    "JsonSerializer",
    "InMemoryNormalizedStore",
    "NormalizedCacheAdapter",
    "build_multi_tier_cache",
    "build_key_builder",
    # Errors
    "TierQLError",
    "TierOperationError",
    # Tenancy
    "get_current_tenant",
    "set_current_tenant",
    "tenant_context",
    # Decorators
    "cached",
    "invalidates",
]
