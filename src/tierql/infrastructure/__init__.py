"""Infrastructure layer implementations for tierql."""

from tierql.infrastructure.backends import (
    InMemoryCacheBackend,
    RedisCacheBackend,
    SqliteCacheBackend,
)
from tierql.infrastructure.key_builders import DefaultKeyBuilder
from tierql.infrastructure.serializers import JsonSerializer
from tierql.infrastructure.stores import InMemoryNormalizedStore

__all__ = [
    "InMemoryCacheBackend",
    "SqliteCacheBackend",
    "RedisCacheBackend",
    "DefaultKeyBuilder",
    "JsonSerializer",
    "InMemoryNormalizedStore",
]
