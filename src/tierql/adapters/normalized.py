"""Adapter exposing a normalized store through the eviction operations
the invalidation engine needs."""

import logging
from collections.abc import Iterable
from typing import Any

from tierql.core.interfaces.normalized_cache import (
    REF,
    ROOT_QUERY,
    INormalizedStore,
    is_reference,
)

logger = logging.getLogger(__name__)


class NormalizedCacheAdapter:
    """Wraps the transport client's normalized store.

    Evicting an entity also evicts every root query field that referenced
    it, directly or through other records, so a read cannot be answered
    from a result that still points at the evicted entity.

    Usage:
        store = InMemoryNormalizedStore()
        adapter = NormalizedCacheAdapter(store)

        await adapter.evict_entity("Order", "123")
        await adapter.garbage_collect()
    """

    def __init__(self, store: INormalizedStore) -> None:
        self._store = store

    @property
    def store(self) -> INormalizedStore:
        return self._store

    async def evict_query(self, name: str) -> bool:
        """Evict every cached result of the root query ``name``."""
        return self._store.evict(field_name=name)

    async def evict_entity(self, type_name: str, entity_id: str) -> bool:
        """Evict one entity and the root queries that referenced it."""
        return await self.evict_id(f"{type_name}:{entity_id}")

    async def evict_all_of_type(self, type_name: str) -> int:
        """Evict every entity of ``type_name``.

        Returns:
            Number of records evicted.
        """
        prefix = f"{type_name}:"
        targets = [cache_id for cache_id in await self.cache_ids() if cache_id.startswith(prefix)]
        return self._evict_ids(targets)

    async def evict_id(self, cache_id: str) -> bool:
        """Evict a record by its raw cache id."""
        return self._evict_ids([cache_id]) > 0

    async def cache_ids(self) -> list[str]:
        return [cache_id for cache_id in self._store.extract() if cache_id != ROOT_QUERY]

    async def garbage_collect(self) -> int:
        """Reclaim unreferenced records.

        Returns:
            Number of records removed.
        """
        removed = self._store.gc()
        if removed:
            logger.debug("Garbage collected %d normalized record(s)", len(removed))
        return len(removed)

    async def reset(self) -> None:
        self._store.reset()

    def _evict_ids(self, cache_ids: Iterable[str]) -> int:
        targets = set(cache_ids)
        if not targets:
            return 0

        # Snapshot before evicting so the cascade can still walk through
        # records that are about to go
        snapshot = self._store.extract()
        evicted = sum(1 for cache_id in targets if self._store.evict(entity_id=cache_id))

        root = snapshot.get(ROOT_QUERY, {})
        for field_key, value in root.items():
            if self._reaches(value, targets, snapshot):
                self._store.evict(field_name=field_key)
                logger.debug("Evicted root field %s referencing evicted record(s)", field_key)
        return evicted

    @staticmethod
    def _reaches(
        value: Any,
        targets: set[str],
        records: dict[str, dict[str, Any]],
    ) -> bool:
        """Check if value references any target, following references."""
        visited: set[str] = set()
        stack = [value]
        while stack:
            current = stack.pop()
            if isinstance(current, list):
                stack.extend(current)
            elif is_reference(current):
                cache_id = current[REF]
                if cache_id in targets:
                    return True
                if cache_id not in visited:
                    visited.add(cache_id)
                    stack.append(records.get(cache_id, {}))
            elif isinstance(current, dict):
                stack.extend(current.values())
        return False
