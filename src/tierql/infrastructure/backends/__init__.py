"""Cache tier backends."""

from tierql.infrastructure.backends.memory import InMemoryCacheBackend
from tierql.infrastructure.backends.redis import RedisCacheBackend
from tierql.infrastructure.backends.sqlite import SqliteCacheBackend

__all__ = [
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "SqliteCacheBackend",
]
