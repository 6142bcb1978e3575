"""Serializer interface."""

from typing import Any, Protocol


class ISerializer(Protocol):
    """Contract for turning query results into the bytes a tier stores.

    Every tier holds opaque bytes; the read path serializes results before
    writing them and deserializes on a hit.
    """

    def serialize(self, value: Any) -> bytes:
        """Encode a query result.

        Raises:
            SerializationError: If the value cannot be encoded.
        """
        ...

    def deserialize(self, data: bytes) -> Any:
        """Decode bytes read back from a tier.

        Raises:
            SerializationError: If the data is not a valid payload.
        """
        ...
