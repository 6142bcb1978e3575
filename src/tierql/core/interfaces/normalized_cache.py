"""Normalized result cache interfaces."""

from typing import Any, Protocol

# Id of the record holding root query fields
ROOT_QUERY = "ROOT_QUERY"
# Key of a reference object pointing at another record
REF = "__ref"


def is_reference(value: Any) -> bool:
    """Check if value is a reference to another record."""
    return isinstance(value, dict) and len(value) == 1 and REF in value


class INormalizedStore(Protocol):
    """The transport client's own normalized result store.

    Records are indexed by cache id (``Typename:id``); root query fields
    live on the ``ROOT_QUERY`` record.
    """

    def evict(self, entity_id: str | None = None, field_name: str | None = None) -> bool:
        """Evict a record, a root field, or a field of a record.

        Returns:
            True if anything was removed.
        """
        ...

    def gc(self) -> list[str]:
        """Remove records no longer reachable from the roots.

        Returns:
            The ids of the removed records.
        """
        ...

    def reset(self) -> None:
        """Drop every record."""
        ...

    def extract(self) -> dict[str, dict[str, Any]]:
        """Snapshot of all records keyed by cache id."""
        ...


class INormalizedCache(Protocol):
    """Eviction operations the invalidation engine needs.

    Keeps the engine ignorant of how the store represents records.
    """

    async def evict_query(self, name: str) -> bool:
        """Evict every cached result of the root query ``name``."""
        ...

    async def evict_entity(self, type_name: str, entity_id: str) -> bool:
        """Evict one entity and every root query that referenced it."""
        ...

    async def evict_all_of_type(self, type_name: str) -> int:
        """Evict every entity of ``type_name``, cascading like evict_entity."""
        ...

    async def evict_id(self, cache_id: str) -> bool:
        """Evict a record by its raw cache id, cascading to root queries."""
        ...

    async def cache_ids(self) -> list[str]:
        """Ids of the records currently held."""
        ...

    async def garbage_collect(self) -> int:
        """Reclaim records left unreferenced by earlier evictions."""
        ...

    async def reset(self) -> None:
        """Drop everything."""
        ...
