"""Query cache - read-through path over the multi-tier and normalized caches."""

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from graphql import DocumentNode

from tierql.core.interfaces.key_builder import IKeyBuilder
from tierql.core.interfaces.multi_tier_cache import IMultiTierCache
from tierql.core.interfaces.normalized_cache import INormalizedStore
from tierql.core.interfaces.serializer import ISerializer
from tierql.infrastructure.serializers.json import SerializationError
from tierql.utils.dependents import decode_keys, encode_keys
from tierql.utils.documents import root_fields

logger = logging.getLogger(__name__)


class QueryCache:
    """Serves query results from cache, loading and storing them on a miss.

    Results are keyed by the first root field of the query, so the keys
    line up with the query names invalidation rules refer to.
    The other root fields of a query get an index entry pointing at the
    result, so invalidating any of them drops it.
    """

    def __init__(
        self,
        multi_tier_cache: IMultiTierCache,
        key_builder: IKeyBuilder,
        serializer: ISerializer,
        store: INormalizedStore | None = None,
    ) -> None:
        """Initialize the query cache.

        Args:
            multi_tier_cache: Where serialized results are cached.
            key_builder: Builds the result keys; must match the one the
                invalidation engine uses.
            serializer: Encodes results for the tiers.
            store: Normalized store fed with every loaded query result.
        """
        self._tiers = multi_tier_cache
        self._key_builder = key_builder
        self._serializer = serializer
        self._store = store

        # Statistics
        self._hits = 0
        self._misses = 0

    @property
    def stats(self) -> dict[str, int]:
        """Get read statistics.

        Returns:
            Dictionary with hits, misses, and total requests.
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "total": self._hits + self._misses,
        }

    async def fetch(
        self,
        query: str | DocumentNode,
        loader: Callable[[], Awaitable[dict[str, Any]]],
        variables: dict[str, Any] | None = None,
        tenant_id: str | None = None,
        ttl: timedelta | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Return the data of a GraphQL query, from cache when possible.

        Args:
            query: The query document.
            loader: Coroutine function executing the query; returns its data.
            variables: Variables of the query.
            tenant_id: Tenant the result belongs to.
            ttl: Time-to-live of the cached result. Tier defaults otherwise.
            operation_name: Operation to run when the document holds several.

        Returns:
            The query data.

        Raises:
            ValueError: If the document has no query operation with a root
                field.
        """
        fields = root_fields(query, variables, operation_name)
        if not fields:
            raise ValueError("Query selects no root field to key the result on")
        key = self._key_builder.build(fields[0].field_name, variables, tenant_id)
        linked = sorted({field.field_name for field in fields} - {fields[0].field_name})

        cached = await self._read(key)
        if cached is not None:
            return cached

        data = await loader()
        if self._store is not None:
            try:
                self._store.write_query(query, data, variables, operation_name)
            except Exception:
                logger.warning("Could not normalize result for %s", key, exc_info=True)
        if await self._write(key, data, ttl):
            for name in linked:
                await self._link(self._key_builder.scoped(name, tenant_id), key, ttl)
        return data

    async def get_or_load(
        self,
        name: str,
        loader: Callable[[], Awaitable[Any]],
        variables: dict[str, Any] | None = None,
        tenant_id: str | None = None,
        ttl: timedelta | None = None,
    ) -> Any:
        """Return a named value from cache, calling loader on a miss.

        Args:
            name: Name the value is cached under, as invalidation rules
                refer to it.
            loader: Coroutine function producing the value.
            variables: Arguments that distinguish values of the same name.
            tenant_id: Tenant the value belongs to.
            ttl: Time-to-live of the cached value. Tier defaults otherwise.
        """
        key = self._key_builder.build(name, variables, tenant_id)

        cached = await self._read(key)
        if cached is not None:
            return cached

        value = await loader()
        await self._write(key, value, ttl)
        return value

    async def clear_tenant(self, tenant_id: str) -> None:
        """Drop every cached result of a tenant."""
        for pattern in self._key_builder.tenant_patterns(tenant_id):
            await self._tiers.clear(pattern)

    async def _read(self, key: str) -> Any | None:
        data = await self._tiers.get(key)
        if data is None:
            self._misses += 1
            return None
        try:
            value = self._serializer.deserialize(data)
        except SerializationError:
            logger.warning("Discarding undecodable cache entry %s", key, exc_info=True)
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def _write(self, key: str, value: Any, ttl: timedelta | None) -> bool:
        if value is None:
            return False
        try:
            payload = self._serializer.serialize(value)
        except SerializationError:
            logger.warning("Not caching unserializable result for %s", key, exc_info=True)
            return False
        await self._tiers.set(key, payload, ttl)
        return True

    async def _link(self, base_key: str, result_key: str, ttl: timedelta | None) -> None:
        """Record result_key in the index entry of base_key."""
        index_key = self._key_builder.dependents_key(base_key)
        keys = [result_key]
        raw = await self._tiers.get(index_key)
        if raw is not None:
            try:
                keys.extend(decode_keys(raw))
            except ValueError:
                logger.warning("Replacing unreadable index entry %s", index_key)
        await self._tiers.set(index_key, encode_keys(keys), ttl)
