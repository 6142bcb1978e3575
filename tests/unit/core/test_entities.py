"""Tests for core entities."""

from datetime import datetime, timedelta, timezone

import pytest

from tierql.core.entities import (
    WILDCARD,
    BackendChange,
    CacheEntry,
    CacheMetrics,
    CacheTier,
    ChangeKind,
    ImpactResult,
    InvalidationConfig,
    InvalidationMetrics,
    InvalidationRule,
    InvalidationSource,
    RuleOrigin,
    TieredCacheConfig,
    TierMetrics,
)
from tierql.exceptions import TierOperationError


class TestCacheEntry:
    """Tests for CacheEntry entity."""

    def test_create_cache_entry(self) -> None:
        """Test creating a cache entry with factory method."""
        entry = CacheEntry.create(
            key="orders_T1",
            value=b"payload",
            tier=CacheTier.L1,
            now=100.0,
            ttl=timedelta(seconds=30),
        )

        assert entry.key == "orders_T1"
        assert entry.value == b"payload"
        assert entry.tier == CacheTier.L1
        assert entry.written_at == 100.0
        assert entry.expires_at == 130.0

    def test_entry_without_ttl_never_expires(self) -> None:
        entry = CacheEntry.create("k", b"v", CacheTier.L2, now=100.0)

        assert entry.expires_at is None
        assert not entry.is_expired(10**12)
        assert entry.remaining_ttl(500.0) is None

    def test_is_expired_at_deadline(self) -> None:
        """An entry is expired from the exact expiry instant on."""
        entry = CacheEntry.create("k", b"v", CacheTier.L1, now=0.0, ttl=timedelta(seconds=1))

        assert not entry.is_expired(0.999)
        assert entry.is_expired(1.0)

    def test_remaining_ttl(self) -> None:
        entry = CacheEntry.create("k", b"v", CacheTier.L3, now=0.0, ttl=timedelta(seconds=10))

        assert entry.remaining_ttl(4.0) == timedelta(seconds=6)
        assert entry.remaining_ttl(20.0) == timedelta(0)

    def test_cache_entry_immutable(self) -> None:
        entry = CacheEntry.create("k", b"v", CacheTier.L1, now=0.0)

        with pytest.raises(AttributeError):
            entry.key = "other"  # type: ignore


class TestInvalidationRule:
    """Tests for InvalidationRule entity."""

    def test_create_from_iterables(self) -> None:
        rule = InvalidationRule.create(
            "shipOrder",
            queries=["orders", "shipments", "orders"],
            types=("Order",),
        )

        assert rule.affected_queries == frozenset({"orders", "shipments"})
        assert rule.affected_types == frozenset({"Order"})
        assert rule.tenant_specific is True
        assert rule.origin == RuleOrigin.CUSTOM

    def test_clears_everything(self) -> None:
        assert InvalidationRule.create("logout", types=[WILDCARD]).clears_everything
        assert not InvalidationRule.create("updateUser", queries=["users"]).clears_everything

    def test_equality_ignores_custom_invalidator(self) -> None:
        async def callback(params):
            return None

        with_callback = InvalidationRule.create("op", queries=["a"], custom_invalidator=callback)
        without = InvalidationRule.create("op", queries=["a"])

        assert with_callback == without


class TestImpactResult:
    """Tests for ImpactResult entity."""

    def test_from_rule_copies_fields(self) -> None:
        rule = InvalidationRule.create(
            "updateTenant",
            queries=["tenants"],
            types=["Tenant"],
            tenant_specific=False,
        )

        impact = ImpactResult.from_rule_record(rule)

        assert impact.queries == rule.affected_queries
        assert impact.types == rule.affected_types
        assert impact.tenant_specific is False
        assert impact.from_rule is True

    def test_is_empty(self) -> None:
        assert ImpactResult().is_empty
        assert not ImpactResult(queries=frozenset({"users"})).is_empty


class TestBackendChange:
    """Tests for BackendChange entity."""

    def test_operation_id(self) -> None:
        change = BackendChange(ChangeKind.DELETE, "Order", "123", "T1")

        assert change.operation_id == "deleteOrder"

    def test_from_camel_case_payload(self) -> None:
        change = BackendChange.from_payload(
            {"changeKind": "UPDATE", "entityType": "Order", "entityId": 7, "tenantId": "T1"}
        )

        assert change == BackendChange(ChangeKind.UPDATE, "Order", "7", "T1")

    def test_from_snake_case_payload_without_tenant(self) -> None:
        change = BackendChange.from_payload(
            {"change_kind": "create", "entity_type": "User", "entity_id": "u1"}
        )

        assert change.tenant_id is None
        assert change.change_kind == ChangeKind.CREATE

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            BackendChange.from_payload({"changeKind": "upsert", "entityType": "A", "entityId": "1"})

    def test_missing_field_rejected(self) -> None:
        with pytest.raises(KeyError):
            BackendChange.from_payload({"changeKind": "create", "entityType": "A"})


class TestInvalidationMetrics:
    """Tests for InvalidationMetrics."""

    def test_record_counts_by_source(self) -> None:
        metrics = InvalidationMetrics()
        at = datetime.now(timezone.utc)

        metrics.record(InvalidationSource.MUTATION, 10.0, at)
        metrics.record(InvalidationSource.BACKEND_PUSH, 10.0, at)
        metrics.record(InvalidationSource.TTL, 10.0, at)
        metrics.record(InvalidationSource.MANUAL, 10.0, at, failures=2)

        assert metrics.total_invalidations == 4
        assert metrics.mutation_based == 2
        assert metrics.time_based == 1
        assert metrics.manual == 1
        assert metrics.failures == 2
        assert metrics.last_invalidation == at

    def test_average_is_exponential_moving_average(self) -> None:
        metrics = InvalidationMetrics()
        at = datetime.now(timezone.utc)

        metrics.record(InvalidationSource.MUTATION, 100.0, at)
        metrics.record(InvalidationSource.MUTATION, 100.0, at)

        assert metrics.average_invalidation_time_ms == pytest.approx(19.0)

    def test_snapshot_is_a_copy(self) -> None:
        metrics = InvalidationMetrics()
        snapshot = metrics.snapshot()

        metrics.record(InvalidationSource.MANUAL, 1.0, datetime.now(timezone.utc))

        assert snapshot.total_invalidations == 0


class TestCacheMetrics:
    """Tests for CacheMetrics."""

    def test_hit_rate(self) -> None:
        assert TierMetrics(hits=3, misses=1).hit_rate == 0.75
        assert TierMetrics().hit_rate == 0.0

    def test_to_dict(self) -> None:
        metrics = CacheMetrics(tiers={CacheTier.L1: TierMetrics(hits=2, size=5)}, total_requests=3)

        result = metrics.to_dict()

        assert result["total_requests"] == 3
        assert result["l1_hits"] == 2
        assert result["l1_size"] == 5


class TestConfig:
    """Tests for configuration entities."""

    def test_tiered_defaults(self) -> None:
        config = TieredCacheConfig()

        assert config.l1_maxsize == 1000
        assert config.l1_default_ttl == timedelta(minutes=5)
        assert config.l2_path is None
        assert config.l2_default_ttl == timedelta(hours=1)
        assert config.l3_url is None
        assert config.l3_default_ttl == timedelta(hours=1)
        assert config.tenant_separator == "_"

    def test_tiered_validation(self) -> None:
        with pytest.raises(ValueError):
            TieredCacheConfig(l1_maxsize=0)
        with pytest.raises(ValueError):
            TieredCacheConfig(tenant_separator="")

    def test_invalidation_defaults(self) -> None:
        config = InvalidationConfig()

        assert config.debounce_delay == timedelta(milliseconds=100)
        assert config.sweep_interval == timedelta(minutes=5)
        assert config.metrics_smoothing == 0.1
        assert config.include_default_rules is True

    def test_invalidation_smoothing_validated(self) -> None:
        with pytest.raises(ValueError):
            InvalidationConfig(metrics_smoothing=0)


class TestTierOperationError:
    def test_message_names_failed_tiers(self) -> None:
        error = TierOperationError(
            "delete",
            {CacheTier.L2: OSError("disk"), CacheTier.L3: ConnectionError("down")},
        )

        assert str(error) == "delete failed on tier(s): L2, L3"
        assert set(error.errors) == {CacheTier.L2, CacheTier.L3}
