"""Domain entities for tierql."""

from tierql.core.entities.cache_config import InvalidationConfig, TieredCacheConfig
from tierql.core.entities.cache_entry import CacheEntry, CachePriority, CacheTier
from tierql.core.entities.invalidation import (
    WILDCARD,
    BackendChange,
    ChangeKind,
    CustomInvalidator,
    ImpactResult,
    InvalidationEvent,
    InvalidationRule,
    InvalidationSource,
    RuleOrigin,
)
from tierql.core.entities.metrics import CacheMetrics, InvalidationMetrics, TierMetrics

__all__ = [
    "CacheEntry",
    "CachePriority",
    "CacheTier",
    "TieredCacheConfig",
    "InvalidationConfig",
    # Invalidation
    "WILDCARD",
    "BackendChange",
    "ChangeKind",
    "CustomInvalidator",
    "ImpactResult",
    "InvalidationEvent",
    "InvalidationRule",
    "InvalidationSource",
    "RuleOrigin",
    # Metrics
    "CacheMetrics",
    "InvalidationMetrics",
    "TierMetrics",
]
