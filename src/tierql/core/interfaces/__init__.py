"""Core interfaces (Protocol classes) for tierql."""

from tierql.core.interfaces.cache_backend import ICacheBackend
from tierql.core.interfaces.key_builder import IKeyBuilder
from tierql.core.interfaces.multi_tier_cache import IMultiTierCache
from tierql.core.interfaces.normalized_cache import INormalizedCache, INormalizedStore
from tierql.core.interfaces.serializer import ISerializer

__all__ = [
    "ICacheBackend",
    "IKeyBuilder",
    "IMultiTierCache",
    "INormalizedCache",
    "INormalizedStore",
    "ISerializer",
]
