"""Key builder interface."""

from typing import Any, Protocol


class IKeyBuilder(Protocol):
    """Contract for building multi-tier cache keys.

    Tenant-scoped keys always embed the tenant id, so two tenants never
    share a key for tenant-specific data.
    """

    def scoped(self, name: str, tenant_id: str | None = None) -> str:
        """Base key for a query or type name, suffixed with the tenant."""
        ...

    def build(
        self,
        name: str,
        variables: dict[str, Any] | None = None,
        tenant_id: str | None = None,
    ) -> str:
        """Key for one cached result of ``name`` with these variables.

        Args:
            name: Root query name (or loader name).
            variables: Variables the result was fetched with.
            tenant_id: Tenant the result belongs to, if tenant-scoped.

        Returns:
            The cache key.
        """
        ...

    def dependents_key(self, base_key: str) -> str:
        """Key of the index entry listing other results that hold base_key.

        Must fall under variants_pattern(base_key), so that clearing the
        variants of a key also drops its index entry.
        """
        ...

    def variants_pattern(self, base_key: str) -> str:
        """Glob matching every variable-specific key derived from base_key."""
        ...

    def tenant_patterns(self, tenant_id: str) -> list[str]:
        """Globs matching every key scoped to tenant_id."""
        ...

    def belongs_to(self, key: str, tenant_id: str) -> bool:
        """Check if key is scoped to tenant_id."""
        ...
