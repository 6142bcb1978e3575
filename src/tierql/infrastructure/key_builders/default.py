"""Default key builder implementation."""

import glob
from typing import Any

from tierql.utils.hashing import hash_value


class DefaultKeyBuilder:
    """Builds tenant-scoped multi-tier cache keys.

    Key layout::

        <name>                      shared result
        <name><sep><tenant>         tenant-scoped result
        <base>:v:<variables hash>   result fetched with variables
        <base>:d                    index of other results holding <base>

    The tenant suffix sits before the variables segment, so the glob
    ``<base>:*`` never reaches into another tenant's keys.

    Names should not contain the separator: ``user_stats`` reads as
    ``user`` scoped to tenant ``stats``. belongs_to() resolves such keys
    from the bases this builder has produced, and falls back to suffix
    matching only for keys it has never built.
    """

    def __init__(self, tenant_separator: str = "_") -> None:
        """Initialize the key builder.

        Args:
            tenant_separator: Separator placed between a name and a tenant id.
        """
        self._separator = tenant_separator
        self._shared_bases: set[str] = set()
        self._scoped_bases: set[str] = set()

    @property
    def tenant_separator(self) -> str:
        return self._separator

    def scoped(self, name: str, tenant_id: str | None = None) -> str:
        """Base key for a query or type name, suffixed with the tenant."""
        if tenant_id:
            base = f"{name}{self._separator}{tenant_id}"
            self._scoped_bases.add(base)
            return base
        self._shared_bases.add(name)
        return name

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
        key = self.scoped(name, tenant_id)
        if variables:
            key = f"{key}:v:{hash_value(variables)}"
        return key

    def dependents_key(self, base_key: str) -> str:
        """Key of the index entry listing other results that hold base_key."""
        return f"{base_key}:d"

    def variants_pattern(self, base_key: str) -> str:
        """Glob matching every variable-specific key derived from base_key."""
        return f"{glob.escape(base_key)}:*"

    def tenant_patterns(self, tenant_id: str) -> list[str]:
        """Globs matching every key scoped to tenant_id."""
        suffix = glob.escape(f"{self._separator}{tenant_id}")
        return [f"*{suffix}", f"*{suffix}:*"]

    def belongs_to(self, key: str, tenant_id: str) -> bool:
        """Check if key is scoped to tenant_id."""
        suffix = f"{self._separator}{tenant_id}"
        base = key.split(":", 1)[0]
        if not base.endswith(suffix) or len(base) == len(suffix):
            return False
        if base in self._scoped_bases:
            return True
        return base not in self._shared_bases
