"""Mutation impact analyzer - maps write operations to what they stale."""

import logging
import re
from collections.abc import Iterable, Iterator
from typing import Any

from tierql.core.entities.invalidation import ImpactResult, InvalidationRule
from tierql.core.services.default_rules import default_rules

logger = logging.getLogger(__name__)

# Naming convention used to infer the entity of an unregistered operation
_OPERATION_PATTERN = re.compile(r"^(create|update|delete)(.+)$")

UNKNOWN_ENTITY = "Unknown"


class MutationImpactAnalyzer:
    """Registry of invalidation rules keyed by operation id.

    Lookups for operations without a rule fall back to the
    ``(create|update|delete)<Entity>`` naming convention. The fallback is
    best-effort: an operation named any other way produces an empty
    impact, so nothing gets invalidated for it.

    Usage:
        analyzer = MutationImpactAnalyzer()
        analyzer.register_rule(
            InvalidationRule.create(
                "shipOrder",
                queries=["orders", "shipments"],
                types=["Order", "Shipment"],
            )
        )
        impact = analyzer.analyze_impact("shipOrder", {"id": "1"})
    """

    def __init__(
        self,
        rules: Iterable[InvalidationRule] | None = None,
        include_defaults: bool = True,
    ) -> None:
        """Initialize the analyzer.

        Args:
            rules: Extra rules registered after the built-in ones, so
                they win on duplicate ids.
            include_defaults: Whether to register the built-in rules.
        """
        self._rules: dict[str, InvalidationRule] = {}
        if include_defaults:
            self.register_rules(default_rules())
        if rules is not None:
            self.register_rules(rules)

    def register_rule(self, rule: InvalidationRule) -> None:
        """Add a rule, replacing any rule with the same operation id."""
        previous = self._rules.get(rule.operation_id)
        if previous is not None and previous != rule:
            logger.debug(
                "Replacing %s invalidation rule for %s",
                previous.origin.value,
                rule.operation_id,
            )
        self._rules[rule.operation_id] = rule

    def register_rules(self, rules: Iterable[InvalidationRule]) -> None:
        for rule in rules:
            self.register_rule(rule)

    def get_rule(self, operation_id: str) -> InvalidationRule | None:
        return self._rules.get(operation_id)

    def rules(self) -> Iterator[InvalidationRule]:
        return iter(list(self._rules.values()))

    def analyze_impact(self, operation_id: str, params: Any = None) -> ImpactResult:
        """Resolve what an operation invalidates.

        Args:
            operation_id: Name of the write operation.
            params: Variables the operation ran with. Not used by the
                lookup itself; handed to custom invalidators.

        Returns:
            The rule's scope verbatim, or the fallback scope.
        """
        rule = self._rules.get(operation_id)
        if rule is not None:
            return ImpactResult.from_rule_record(rule)
        return self._fallback(operation_id)

    def _fallback(self, operation_id: str) -> ImpactResult:
        entity_type = self.extract_entity_type(operation_id)
        if entity_type == UNKNOWN_ENTITY:
            logger.debug("No invalidation rule or convention match for %s", operation_id)
            return ImpactResult(entity_type=UNKNOWN_ENTITY)

        lowered = entity_type.lower()
        return ImpactResult(
            queries=frozenset({f"{lowered}s", lowered}),
            types=frozenset({entity_type}),
            tenant_specific=True,
            entity_type=entity_type,
        )

    @staticmethod
    def extract_entity_type(operation_id: str) -> str:
        """Infer the entity from an operation name, e.g. createUser -> User."""
        match = _OPERATION_PATTERN.match(operation_id)
        if match is None:
            return UNKNOWN_ENTITY
        name = match.group(2)
        return name[:1].upper() + name[1:]

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)
