"""Adapters between tierql and the transport client's caches."""

from tierql.adapters.normalized import NormalizedCacheAdapter

__all__ = ["NormalizedCacheAdapter"]
