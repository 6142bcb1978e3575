"""In-memory normalized result store."""

import copy
from typing import Any

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    SelectionSetNode,
    parse,
)

from tierql.core.interfaces.normalized_cache import REF, ROOT_QUERY, is_reference
from tierql.utils.documents import field_arguments, get_operation, storage_key


class _MissingField(Exception):
    """A field or record needed to answer a read is not in the store."""


def _matches_field(key: str, field_name: str) -> bool:
    return key == field_name or key.startswith(f"{field_name}(")


class InMemoryNormalizedStore:
    """Normalized store for GraphQL query results.

    Objects that carry ``__typename`` and an id field are stored once as
    records keyed ``Typename:id`` and replaced by ``{"__ref": id}`` where
    they appear. Root fields live on the ``ROOT_QUERY`` record under
    ``field`` or ``field({"arg":...})``.

    Reads and writes walk the query's selection sets, so queries must
    select ``__typename`` and the id field for objects to be normalized.
    Fields selected through a type-conditioned fragment are optional on
    read.
    """

    def __init__(self, id_fields: tuple[str, ...] = ("id", "_id")) -> None:
        """Initialize the store.

        Args:
            id_fields: Field names tried, in order, to identify an object.
        """
        self._id_fields = id_fields
        self._records: dict[str, dict[str, Any]] = {}

    def identify(self, obj: dict[str, Any]) -> str | None:
        """Return the cache id of an object, or None if it has none."""
        typename = obj.get("__typename")
        if not typename:
            return None
        for id_field in self._id_fields:
            if obj.get(id_field) is not None:
                return f"{typename}:{obj[id_field]}"
        return None

    def write_query(
        self,
        query: str | DocumentNode,
        data: dict[str, Any],
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> None:
        """Normalize and store the data returned for a query."""
        document = parse(query) if isinstance(query, str) else query
        operation = get_operation(document, operation_name)
        fragments = self._fragments(document)
        root = self._records.setdefault(ROOT_QUERY, {})
        self._write_selection(root, operation.selection_set, data, variables, fragments)

    def read_query(
        self,
        query: str | DocumentNode,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any] | None:
        """Rebuild a query result from the store.

        Returns:
            The result data, or None if any required field or referenced
            record is missing.
        """
        root = self._records.get(ROOT_QUERY)
        if root is None:
            return None
        document = parse(query) if isinstance(query, str) else query
        operation = get_operation(document, operation_name)
        fragments = self._fragments(document)
        try:
            return self._read_selection(root, operation.selection_set, variables, fragments)
        except _MissingField:
            return None

    def evict(self, entity_id: str | None = None, field_name: str | None = None) -> bool:
        """Evict a record, a root field, or a field of a record.

        ``field_name`` matches the field with any arguments, or one exact
        storage key.

        Returns:
            True if anything was removed.
        """
        if entity_id is not None and field_name is None:
            return self._records.pop(entity_id, None) is not None

        record = self._records.get(entity_id or ROOT_QUERY)
        if record is None or field_name is None:
            return False
        matching = [key for key in record if _matches_field(key, field_name)]
        for key in matching:
            del record[key]
        return bool(matching)

    def gc(self) -> list[str]:
        """Remove records that are not reachable from ROOT_QUERY."""
        reachable: set[str] = set()
        pending = [ROOT_QUERY]
        while pending:
            cache_id = pending.pop()
            if cache_id in reachable or cache_id not in self._records:
                continue
            reachable.add(cache_id)
            pending.extend(self._references_in(self._records[cache_id]))

        removed = [cache_id for cache_id in self._records if cache_id not in reachable]
        for cache_id in removed:
            del self._records[cache_id]
        return removed

    def reset(self) -> None:
        self._records.clear()

    def extract(self) -> dict[str, dict[str, Any]]:
        """Deep copy of every record keyed by cache id."""
        return copy.deepcopy(self._records)

    def __contains__(self, cache_id: object) -> bool:
        return cache_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    # Selection walking

    def _write_selection(
        self,
        target: dict[str, Any],
        selection_set: SelectionSetNode,
        data: dict[str, Any],
        variables: dict[str, Any] | None,
        fragments: dict[str, FragmentDefinitionNode],
    ) -> None:
        for field, _optional in self._collect_fields(selection_set, fragments):
            response_key = field.alias.value if field.alias else field.name.value
            if response_key not in data:
                continue
            key = storage_key(field.name.value, field_arguments(field, variables))
            target[key] = self._write_value(field, data[response_key], variables, fragments)

    def _write_value(
        self,
        field: FieldNode,
        value: Any,
        variables: dict[str, Any] | None,
        fragments: dict[str, FragmentDefinitionNode],
    ) -> Any:
        if isinstance(value, list):
            return [self._write_value(field, item, variables, fragments) for item in value]
        if not isinstance(value, dict) or field.selection_set is None:
            return copy.deepcopy(value)

        cache_id = self.identify(value)
        if cache_id is None:
            nested: dict[str, Any] = {}
            self._write_selection(nested, field.selection_set, value, variables, fragments)
            return nested

        record = self._records.setdefault(cache_id, {})
        self._write_selection(record, field.selection_set, value, variables, fragments)
        return {REF: cache_id}

    def _read_selection(
        self,
        record: dict[str, Any],
        selection_set: SelectionSetNode,
        variables: dict[str, Any] | None,
        fragments: dict[str, FragmentDefinitionNode],
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for field, optional in self._collect_fields(selection_set, fragments):
            key = storage_key(field.name.value, field_arguments(field, variables))
            if key not in record:
                if optional:
                    continue
                raise _MissingField(key)
            response_key = field.alias.value if field.alias else field.name.value
            result[response_key] = self._read_value(field, record[key], variables, fragments)
        return result

    def _read_value(
        self,
        field: FieldNode,
        value: Any,
        variables: dict[str, Any] | None,
        fragments: dict[str, FragmentDefinitionNode],
    ) -> Any:
        if isinstance(value, list):
            return [self._read_value(field, item, variables, fragments) for item in value]
        if not isinstance(value, dict) or field.selection_set is None:
            return copy.deepcopy(value)
        if is_reference(value):
            record = self._records.get(value[REF])
            if record is None:
                raise _MissingField(value[REF])
            value = record
        return self._read_selection(value, field.selection_set, variables, fragments)

    def _collect_fields(
        self,
        selection_set: SelectionSetNode,
        fragments: dict[str, FragmentDefinitionNode],
        optional: bool = False,
    ) -> list[tuple[FieldNode, bool]]:
        fields: list[tuple[FieldNode, bool]] = []
        for selection in selection_set.selections:
            if isinstance(selection, FieldNode):
                fields.append((selection, optional))
            elif isinstance(selection, InlineFragmentNode):
                conditional = optional or selection.type_condition is not None
                fields.extend(
                    self._collect_fields(selection.selection_set, fragments, conditional)
                )
            elif isinstance(selection, FragmentSpreadNode):
                fragment = fragments.get(selection.name.value)
                if fragment is not None:
                    fields.extend(self._collect_fields(fragment.selection_set, fragments, True))
        return fields

    @staticmethod
    def _fragments(document: DocumentNode) -> dict[str, FragmentDefinitionNode]:
        return {
            definition.name.value: definition
            for definition in document.definitions
            if isinstance(definition, FragmentDefinitionNode)
        }

    @staticmethod
    def _references_in(value: Any) -> list[str]:
        found: list[str] = []
        stack = [value]
        while stack:
            current = stack.pop()
            if isinstance(current, list):
                stack.extend(current)
            elif isinstance(current, dict):
                if is_reference(current):
                    found.append(current[REF])
                else:
                    stack.extend(current.values())
        return found
