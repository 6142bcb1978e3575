"""Normalized store implementations."""

from tierql.infrastructure.stores.memory import InMemoryNormalizedStore

__all__ = ["InMemoryNormalizedStore"]
