"""Tests for RedisCacheBackend against a mocked redis.asyncio client."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from tierql.core.entities import CacheTier
from tierql.infrastructure.backends.redis import RedisCacheBackend


def make_client(get_result=None, pttl_result=-2) -> MagicMock:
    client = MagicMock()
    for name in ("psetex", "set", "delete", "exists", "scan", "aclose"):
        setattr(client, name, AsyncMock())

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[get_result, pttl_result])
    pipeline = MagicMock()
    pipeline.__aenter__ = AsyncMock(return_value=pipe)
    pipeline.__aexit__ = AsyncMock(return_value=None)
    client.pipeline.return_value = pipeline
    client.pipe = pipe
    return client


@pytest.fixture
def client() -> MagicMock:
    return make_client()


@pytest.fixture
def backend(client, clock) -> RedisCacheBackend:
    return RedisCacheBackend(key_prefix="app", client=client, clock=clock)


class TestRedisCacheBackend:
    """Tests for RedisCacheBackend."""

    async def test_get_builds_entry_from_pttl(self, clock) -> None:
        client = make_client(get_result=b"payload", pttl_result=1500)
        backend = RedisCacheBackend(key_prefix="app", client=client, clock=clock)

        entry = await backend.get("orders_T1")

        assert entry is not None
        assert entry.value == b"payload"
        assert entry.tier == CacheTier.L3
        assert entry.expires_at == pytest.approx(clock() + 1.5)
        client.pipe.get.assert_called_once_with("app:orders_T1")
        client.pipe.pttl.assert_called_once_with("app:orders_T1")

    async def test_get_without_expiry(self, clock) -> None:
        backend = RedisCacheBackend(client=make_client(b"v", -1), clock=clock)

        entry = await backend.get("k")

        assert entry is not None
        assert entry.expires_at is None

    async def test_get_missing(self, backend) -> None:
        assert await backend.get("missing") is None

    async def test_set_with_ttl(self, backend, client) -> None:
        await backend.set("k", b"v", ttl=timedelta(seconds=2))

        client.psetex.assert_awaited_once_with("app:k", 2000, b"v")

    async def test_set_uses_default_ttl(self, backend, client) -> None:
        await backend.set("k", b"v")

        client.psetex.assert_awaited_once_with("app:k", 3600 * 1000, b"v")

    async def test_set_without_ttl(self, client) -> None:
        backend = RedisCacheBackend(key_prefix="app", default_ttl=None, client=client)

        await backend.set("k", b"v")

        client.set.assert_awaited_once_with("app:k", b"v")

    async def test_delete_many(self, backend, client) -> None:
        client.delete.return_value = 2

        assert await backend.delete_many(["a", "b"]) == 2
        client.delete.assert_awaited_once_with("app:a", "app:b")

    async def test_delete_many_empty(self, backend, client) -> None:
        assert await backend.delete_many([]) == 0
        client.delete.assert_not_awaited()

    async def test_delete_pattern_scans(self, backend, client) -> None:
        client.scan.side_effect = [(5, [b"app:orders:1"]), (0, [b"app:orders:2"])]
        client.delete.return_value = 1

        assert await backend.delete_pattern("orders:*") == 2
        assert client.scan.await_args_list[0].kwargs["match"] == "app:orders:*"

    async def test_clear_only_prefixed(self, backend, client) -> None:
        client.scan.return_value = (0, [])

        await backend.clear()

        client.scan.assert_awaited_once_with(0, match="app:*", count=100)

    async def test_prefix_wildcards_escaped(self, client, clock) -> None:
        backend = RedisCacheBackend(key_prefix="app*[1]", client=client, clock=clock)
        client.scan.return_value = (0, [])

        await backend.delete_pattern("orders_T1:*")
        await backend.clear()

        matches = [call.kwargs["match"] for call in client.scan.await_args_list]
        assert matches == ["app[*][[]1]:orders_T1:*", "app[*][[]1]:*"]

    async def test_keys_unprefixed(self, backend, client) -> None:
        async def scan_iter(match, count):
            for raw in (b"app:orders_T1", "app:users_T1"):
                yield raw

        client.scan_iter = scan_iter

        assert await backend.keys() == ["orders_T1", "users_T1"]

    async def test_purge_expired_is_noop(self, backend) -> None:
        assert await backend.purge_expired() == 0

    async def test_close(self, backend, client) -> None:
        async with backend:
            pass

        client.aclose.assert_awaited_once()
