"""Tests for the invalidates and cached decorators."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from tierql.core.services.multi_tier_cache import MultiTierCache
from tierql.core.services.query_cache import QueryCache
from tierql.decorators import cached, invalidates
from tierql.infrastructure.backends.memory import InMemoryCacheBackend
from tierql.infrastructure.key_builders.default import DefaultKeyBuilder
from tierql.infrastructure.serializers.json import JsonSerializer
from tierql.tenancy import tenant_context


@pytest.fixture
def engine() -> MagicMock:
    engine = MagicMock()
    engine.invalidate_from_mutation = AsyncMock()
    return engine


@pytest.fixture
def tiers(clock) -> MultiTierCache:
    return MultiTierCache(InMemoryCacheBackend(clock=clock), clock=clock)


@pytest.fixture
def query_cache(tiers) -> QueryCache:
    return QueryCache(tiers, DefaultKeyBuilder(), JsonSerializer())


class TestInvalidatesDecorator:
    """Tests for @invalidates decorator."""

    async def test_operation_id_from_function_name(self, engine) -> None:
        @invalidates(engine, wait=True, tenant_id="T1")
        async def update_order(id: str, status: str) -> dict:
            return {"id": id, "status": status}

        result = await update_order("123", status="PAID")

        assert result == {"id": "123", "status": "PAID"}
        engine.invalidate_from_mutation.assert_awaited_once_with(
            "updateOrder", {"id": "123", "status": "PAID"}, "T1"
        )

    async def test_explicit_operation_id(self, engine) -> None:
        @invalidates(engine, operation_id="shipOrder", wait=True)
        async def ship(id: str) -> None:
            return None

        await ship(id="1")

        engine.invalidate_from_mutation.assert_awaited_once_with("shipOrder", {"id": "1"}, None)

    async def test_scheduled_by_default(self, engine) -> None:
        @invalidates(engine)
        async def create_widget(name: str) -> str:
            return name

        await create_widget("w")

        engine.notify_mutation.assert_called_once_with("createWidget", {"name": "w"}, None)
        engine.invalidate_from_mutation.assert_not_awaited()

    async def test_current_tenant_used(self, engine) -> None:
        @invalidates(engine, wait=True)
        async def delete_order(id: str) -> None:
            return None

        with tenant_context("T9"):
            await delete_order("1")

        engine.invalidate_from_mutation.assert_awaited_once_with("deleteOrder", {"id": "1"}, "T9")

    async def test_failed_mutation_not_invalidated(self, engine) -> None:
        @invalidates(engine, wait=True)
        async def update_order(id: str) -> None:
            raise RuntimeError("rejected")

        with pytest.raises(RuntimeError):
            await update_order("1")

        engine.invalidate_from_mutation.assert_not_awaited()

    async def test_self_skipped(self, engine) -> None:
        class Orders:
            @invalidates(engine, wait=True)
            async def update_order(self, id: str) -> None:
                return None

        await Orders().update_order("1")

        engine.invalidate_from_mutation.assert_awaited_once_with("updateOrder", {"id": "1"}, None)

    async def test_preserves_metadata(self, engine) -> None:
        @invalidates(engine)
        async def update_order(id: str) -> None:
            """Update an order."""

        assert update_order.__name__ == "update_order"
        assert update_order.__doc__ == "Update an order."


class TestCachedDecorator:
    """Tests for @cached decorator."""

    async def test_caches_result(self, query_cache, tiers) -> None:
        loader = AsyncMock(return_value=[{"id": "1"}])

        @cached(query_cache, name="orders", tenant_id="T1")
        async def list_orders() -> list:
            return await loader()

        assert await list_orders() == [{"id": "1"}]
        assert await list_orders() == [{"id": "1"}]

        loader.assert_awaited_once()
        assert await tiers.keys() == ["orders_T1"]

    async def test_arguments_distinguish_results(self, query_cache) -> None:
        calls = []

        @cached(query_cache)
        async def order_stats(day: str) -> dict:
            calls.append(day)
            return {"day": day}

        await order_stats("mon")
        await order_stats(day="mon")
        await order_stats("tue")

        assert calls == ["mon", "tue"]

    async def test_name_from_function_and_current_tenant(self, query_cache, tiers) -> None:
        @cached(query_cache)
        async def current_user() -> dict:
            return {"id": "u1"}

        with tenant_context("T2"):
            await current_user()

        assert await tiers.keys() == ["currentUser_T2"]
