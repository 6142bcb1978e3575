"""Tests for NormalizedCacheAdapter."""

import pytest

from tierql.adapters.normalized import NormalizedCacheAdapter
from tierql.core.interfaces.normalized_cache import ROOT_QUERY
from tierql.infrastructure.stores.memory import InMemoryNormalizedStore

ORDERS_QUERY = "{ orders { __typename id status customer { __typename id name } } }"
CUSTOMERS_QUERY = "{ customers { __typename id name } }"
SHIPMENT_QUERY = '{ shipment(id: "s1") { __typename id order { __typename id } } }'


@pytest.fixture
def store() -> InMemoryNormalizedStore:
    store = InMemoryNormalizedStore()
    store.write_query(
        ORDERS_QUERY,
        {
            "orders": [
                {
                    "__typename": "Order",
                    "id": "1",
                    "status": "NEW",
                    "customer": {"__typename": "Customer", "id": "c1", "name": "Ada"},
                },
                {
                    "__typename": "Order",
                    "id": "2",
                    "status": "PAID",
                    "customer": {"__typename": "Customer", "id": "c2", "name": "Bob"},
                },
            ]
        },
    )
    store.write_query(
        CUSTOMERS_QUERY,
        {"customers": [{"__typename": "Customer", "id": "c3", "name": "Cy"}]},
    )
    store.write_query(
        SHIPMENT_QUERY,
        {"shipment": {"__typename": "Shipment", "id": "s1", "order": {"__typename": "Order", "id": "1"}}},
    )
    return store


@pytest.fixture
def adapter(store) -> NormalizedCacheAdapter:
    return NormalizedCacheAdapter(store)


class TestNormalizedCacheAdapter:
    """Tests for NormalizedCacheAdapter."""

    async def test_evict_query(self, adapter, store) -> None:
        assert await adapter.evict_query("customers") is True
        assert await adapter.evict_query("customers") is False

        assert store.read_query(CUSTOMERS_QUERY) is None
        assert store.read_query(ORDERS_QUERY) is not None

    async def test_evict_entity_cascades_to_root_fields(self, adapter, store) -> None:
        assert await adapter.evict_entity("Order", "1") is True

        root = store.extract()[ROOT_QUERY]
        assert "orders" not in root
        assert 'shipment({"id":"s1"})' not in root
        assert "customers" in root

    async def test_evict_entity_cascades_through_records(self, adapter, store) -> None:
        # shipment -> Order:1 -> Customer:c1
        await adapter.evict_entity("Customer", "c1")

        root = store.extract()[ROOT_QUERY]
        assert "orders" not in root
        assert 'shipment({"id":"s1"})' not in root
        assert "customers" in root

    async def test_evict_missing_entity(self, adapter) -> None:
        assert await adapter.evict_entity("Order", "404") is False

    async def test_evict_all_of_type(self, adapter, store) -> None:
        assert await adapter.evict_all_of_type("Customer") == 3

        assert not any(cache_id.startswith("Customer:") for cache_id in await adapter.cache_ids())
        assert store.read_query(CUSTOMERS_QUERY) is None

    async def test_evict_all_of_type_none_present(self, adapter) -> None:
        assert await adapter.evict_all_of_type("Invoice") == 0

    async def test_cache_ids_exclude_root(self, adapter) -> None:
        ids = await adapter.cache_ids()

        assert ROOT_QUERY not in ids
        assert "Order:1" in ids

    async def test_evict_id(self, adapter, store) -> None:
        assert await adapter.evict_id("Customer:c3") is True
        assert await adapter.evict_id("Customer:c3") is False

        assert "customers" not in store.extract()[ROOT_QUERY]

    async def test_garbage_collect(self, adapter, store) -> None:
        await adapter.evict_query("orders")
        await adapter.evict_query("shipment")

        removed = await adapter.garbage_collect()

        assert removed == 5
        assert sorted(await adapter.cache_ids()) == ["Customer:c3"]

    async def test_reset(self, adapter, store) -> None:
        await adapter.reset()

        assert len(store) == 0
        assert adapter.store is store
