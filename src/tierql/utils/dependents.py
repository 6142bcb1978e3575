"""Index entries linking a root field to results cached under another key.

A query result is cached once, under the key of its first root field.
Each further root field of the query gets an index entry listing the
result keys that contain it, so that invalidating that field reaches
them too.
"""

import json
from collections.abc import Iterable


def encode_keys(keys: Iterable[str]) -> bytes:
    """Encode result keys for an index entry."""
    return json.dumps(sorted(set(keys)), separators=(",", ":")).encode()


def decode_keys(raw: bytes) -> list[str]:
    """Decode the result keys of an index entry.

    Raises:
        ValueError: If raw is not an encoded key list.
    """
    value = json.loads(raw)
    if not isinstance(value, list) or not all(isinstance(key, str) for key in value):
        raise ValueError("Index entry is not a list of keys")
    return value
