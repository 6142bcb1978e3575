"""Core domain layer for tierql."""

from tierql.core.entities import (
    CacheEntry,
    CacheTier,
    ImpactResult,
    InvalidationConfig,
    InvalidationRule,
    TieredCacheConfig,
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
)

__all__ = [
    # Entities
    "CacheEntry",
    "CacheTier",
    "ImpactResult",
    "InvalidationConfig",
    "InvalidationRule",
    "TieredCacheConfig",
    # Interfaces
    "ICacheBackend",
    "IKeyBuilder",
    "IMultiTierCache",
    "INormalizedCache",
    "INormalizedStore",
    "ISerializer",
    # Services
    "CacheInvalidationEngine",
    "MultiTierCache",
    "MutationImpactAnalyzer",
    "QueryCache",
]
