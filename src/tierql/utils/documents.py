"""GraphQL document helpers.

Map the root selections of a query document to the names the caches
use: the response key (alias or field name) to read from the result, the
field name to key multi-tier entries, and the storage key that includes
the field arguments.
"""

from dataclasses import dataclass
from typing import Any

from graphql import (
    DocumentNode,
    FieldNode,
    OperationDefinitionNode,
    OperationType,
    Undefined,
    parse,
    value_from_ast_untyped,
)

from tierql.utils.hashing import stable_json


@dataclass(frozen=True)
class RootField:
    """One root selection of an operation."""

    response_key: str
    field_name: str
    arguments: dict[str, Any]

    @property
    def storage_key(self) -> str:
        """Key of the field on the ROOT_QUERY record."""
        return storage_key(self.field_name, self.arguments)


def storage_key(field_name: str, arguments: dict[str, Any] | None = None) -> str:
    """Build a normalized-store field key, e.g. ``orders({"limit":10})``."""
    if not arguments:
        return field_name
    return f"{field_name}({stable_json(arguments)})"


def field_name_of(key: str) -> str:
    """Strip the argument suffix from a storage key."""
    return key.split("(", 1)[0]


def get_operation(
    document: DocumentNode,
    operation_name: str | None = None,
) -> OperationDefinitionNode:
    """Pick the operation to run from a document.

    Raises:
        ValueError: If no operation matches, or the choice is ambiguous.
    """
    operations = [
        definition
        for definition in document.definitions
        if isinstance(definition, OperationDefinitionNode)
    ]
    if operation_name is not None:
        for operation in operations:
            if operation.name is not None and operation.name.value == operation_name:
                return operation
        raise ValueError(f"Unknown operation named '{operation_name}'")
    if len(operations) != 1:
        raise ValueError("Document must contain exactly one operation or name one")
    return operations[0]


def root_fields(
    query: str | DocumentNode,
    variables: dict[str, Any] | None = None,
    operation_name: str | None = None,
) -> list[RootField]:
    """List the root fields selected by a query operation.

    Fragments at the root are not expanded.

    Raises:
        ValueError: If the operation is not a query.
        graphql.GraphQLSyntaxError: If the document does not parse.
    """
    document = parse(query) if isinstance(query, str) else query
    operation = get_operation(document, operation_name)
    if operation.operation != OperationType.QUERY:
        raise ValueError(f"Expected a query operation, got {operation.operation.value}")

    fields: list[RootField] = []
    for selection in operation.selection_set.selections:
        if not isinstance(selection, FieldNode):
            continue
        fields.append(
            RootField(
                response_key=selection.alias.value if selection.alias else selection.name.value,
                field_name=selection.name.value,
                arguments=field_arguments(selection, variables),
            )
        )
    return fields


def field_arguments(field: FieldNode, variables: dict[str, Any] | None) -> dict[str, Any]:
    """Resolve the arguments of a field, leaving out unset variables."""
    arguments = {}
    for argument in field.arguments or ():
        value = value_from_ast_untyped(argument.value, variables)
        if value is not Undefined:
            arguments[argument.name.value] = value
    return arguments
