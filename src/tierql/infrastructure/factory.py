"""Wiring of the multi-tier cache from configuration."""

import time
from collections.abc import Callable

from tierql.core.entities.cache_config import TieredCacheConfig
from tierql.core.services.multi_tier_cache import MultiTierCache
from tierql.infrastructure.backends.memory import InMemoryCacheBackend
from tierql.infrastructure.backends.redis import RedisCacheBackend
from tierql.infrastructure.backends.sqlite import SqliteCacheBackend
from tierql.infrastructure.key_builders.default import DefaultKeyBuilder


def build_multi_tier_cache(
    config: TieredCacheConfig | None = None,
    clock: Callable[[], float] = time.time,
) -> MultiTierCache:
    """Create a multi-tier cache with the tiers the config enables.

    Args:
        config: Tier configuration. Uses defaults (L1 only) if not provided.
        clock: Time source shared by every tier.

    Returns:
        The configured MultiTierCache.
    """
    config = config or TieredCacheConfig()

    l1 = InMemoryCacheBackend(
        maxsize=config.l1_maxsize,
        default_ttl=config.l1_default_ttl,
        clock=clock,
    )
    l2 = None
    if config.l2_path is not None:
        l2 = SqliteCacheBackend(
            path=config.l2_path,
            maxsize=config.l2_maxsize,
            default_ttl=config.l2_default_ttl,
            clock=clock,
        )
    l3 = None
    if config.l3_url is not None:
        l3 = RedisCacheBackend(
            redis_url=config.l3_url,
            key_prefix=config.l3_key_prefix,
            default_ttl=config.l3_default_ttl,
            clock=clock,
        )
    return MultiTierCache(l1=l1, l2=l2, l3=l3, clock=clock)


def build_key_builder(config: TieredCacheConfig | None = None) -> DefaultKeyBuilder:
    config = config or TieredCacheConfig()
    return DefaultKeyBuilder(tenant_separator=config.tenant_separator)
