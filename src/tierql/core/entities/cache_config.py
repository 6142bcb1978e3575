"""Configuration entities."""

from dataclasses import dataclass
from datetime import timedelta


@dataclass
class TieredCacheConfig:
    """Multi-tier cache configuration.

    L1 is always present. L2 is enabled by giving ``l2_path`` (a SQLite
    file, or ":memory:"), L3 by giving ``l3_url`` (a Redis URL).
    """

    l1_maxsize: int = 1000
    l1_default_ttl: timedelta | None = None

    l2_path: str | None = None
    l2_maxsize: int = 10000
    l2_default_ttl: timedelta | None = None

    l3_url: str | None = None
    l3_key_prefix: str = "tierql"
    l3_default_ttl: timedelta | None = None

    # Separator between a key and the tenant id it is scoped to
    tenant_separator: str = "_"

    def __post_init__(self) -> None:
        """Set default TTLs if not provided."""
        if self.l1_default_ttl is None:
            self.l1_default_ttl = timedelta(minutes=5)
        if self.l2_default_ttl is None:
            self.l2_default_ttl = timedelta(hours=1)
        if self.l3_default_ttl is None:
            self.l3_default_ttl = timedelta(hours=1)
        if self.l1_maxsize <= 0:
            raise ValueError("l1_maxsize must be positive")
        if not self.tenant_separator:
            raise ValueError("tenant_separator must not be empty")


@dataclass
class InvalidationConfig:
    """Invalidation engine configuration."""

    debounce_delay: timedelta | None = None
    sweep_interval: timedelta | None = None
    metrics_smoothing: float = 0.1  # weight of the newest sample
    event_history: int = 100
    include_default_rules: bool = True

    def __post_init__(self) -> None:
        if self.debounce_delay is None:
            self.debounce_delay = timedelta(milliseconds=100)
        if self.sweep_interval is None:
            self.sweep_interval = timedelta(minutes=5)
        if not 0 < self.metrics_smoothing <= 1:
            raise ValueError("metrics_smoothing must be in (0, 1]")
