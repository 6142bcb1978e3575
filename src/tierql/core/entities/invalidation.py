"""Invalidation entities: rules, impact results, events and push changes."""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Reserved query/type name meaning "everything". Only used for tenant
# switch and logout, where the whole cache must go regardless of tenant.
WILDCARD = "*"

CustomInvalidator = Callable[[Any], Awaitable[None] | None]


class ChangeKind(Enum):
    """Kind of backend change carried by a push notification."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InvalidationSource(Enum):
    """What triggered an invalidation."""

    MUTATION = "mutation"
    BACKEND_PUSH = "backend-push"
    MANUAL = "manual"
    TTL = "ttl"


class RuleOrigin(Enum):
    """Where an invalidation rule was registered from."""

    BUILTIN = "builtin"
    CUSTOM = "custom"


@dataclass(frozen=True)
class InvalidationRule:
    """Declares which cached queries and entity types an operation stales.

    Rules are keyed by ``operation_id``. Registering a second rule with the
    same id replaces the first one; rules are never merged.
    """

    operation_id: str
    affected_queries: frozenset[str] = frozenset()
    affected_types: frozenset[str] = frozenset()
    tenant_specific: bool = True
    custom_invalidator: CustomInvalidator | None = field(default=None, compare=False)
    origin: RuleOrigin = RuleOrigin.CUSTOM

    @property
    def clears_everything(self) -> bool:
        """Check if the rule uses the wildcard query or type."""
        return WILDCARD in self.affected_queries or WILDCARD in self.affected_types

    @classmethod
    def create(
        cls,
        operation_id: str,
        queries: Iterable[str] = (),
        types: Iterable[str] = (),
        tenant_specific: bool = True,
        custom_invalidator: CustomInvalidator | None = None,
        origin: RuleOrigin = RuleOrigin.CUSTOM,
    ) -> "InvalidationRule":
        """Factory method accepting any iterables of names.

        Args:
            operation_id: Mutation name the rule applies to.
            queries: Root query names to evict. May contain "*".
            types: Entity type names to evict. May contain "*".
            tenant_specific: Whether the cached data is scoped per tenant.
            custom_invalidator: Optional async callback run before eviction.
            origin: Tag recording where the rule came from.

        Returns:
            A new InvalidationRule instance.
        """
        return cls(
            operation_id=operation_id,
            affected_queries=frozenset(queries),
            affected_types=frozenset(types),
            tenant_specific=tenant_specific,
            custom_invalidator=custom_invalidator,
            origin=origin,
        )


@dataclass(frozen=True)
class ImpactResult:
    """Resolved invalidation scope for one request.

    Either copied from a registered rule (``from_rule=True``) or derived
    by the name-convention fallback, in which case ``entity_type`` holds
    the inferred type ("Unknown" when nothing could be inferred).
    """

    queries: frozenset[str] = frozenset()
    types: frozenset[str] = frozenset()
    tenant_specific: bool = True
    custom_invalidator: CustomInvalidator | None = field(default=None, compare=False)
    entity_type: str | None = None
    from_rule: bool = False

    @property
    def is_empty(self) -> bool:
        """Check if nothing would be evicted."""
        return not self.queries and not self.types and self.custom_invalidator is None

    @property
    def clears_everything(self) -> bool:
        return WILDCARD in self.queries or WILDCARD in self.types

    @classmethod
    def from_rule_record(cls, rule: InvalidationRule) -> "ImpactResult":
        return cls(
            queries=rule.affected_queries,
            types=rule.affected_types,
            tenant_specific=rule.tenant_specific,
            custom_invalidator=rule.custom_invalidator,
            from_rule=True,
        )


@dataclass(frozen=True)
class InvalidationEvent:
    """Record of one completed invalidation, kept for observability."""

    source: InvalidationSource
    operation_id: str
    timestamp: datetime
    tenant_id: str | None = None
    duration_ms: float = 0.0
    failures: int = 0

    @property
    def succeeded(self) -> bool:
        return self.failures == 0


@dataclass(frozen=True)
class BackendChange:
    """A change notification pushed by the backend."""

    change_kind: ChangeKind
    entity_type: str
    entity_id: str
    tenant_id: str | None = None

    @property
    def operation_id(self) -> str:
        """Mutation-shaped id used to look up invalidation rules."""
        return f"{self.change_kind.value}{self.entity_type}"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BackendChange":
        """Build a change from a push payload.

        Accepts both camelCase (``changeKind``, ``entityType``...) and
        snake_case keys.

        Raises:
            ValueError: If the change kind is unknown.
            KeyError: If a required field is missing.
        """

        def pick(snake: str, camel: str) -> Any:
            if snake in payload:
                return payload[snake]
            return payload[camel]

        tenant_id = payload.get("tenant_id", payload.get("tenantId"))
        return cls(
            change_kind=ChangeKind(str(pick("change_kind", "changeKind")).lower()),
            entity_type=str(pick("entity_type", "entityType")),
            entity_id=str(pick("entity_id", "entityId")),
            tenant_id=str(tenant_id) if tenant_id is not None else None,
        )
