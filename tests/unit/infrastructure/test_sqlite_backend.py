"""Tests for SqliteCacheBackend."""

from datetime import timedelta

import pytest

from tierql.core.entities import CacheTier
from tierql.infrastructure.backends.sqlite import SqliteCacheBackend


@pytest.fixture
async def backend(tmp_path, clock):
    backend = SqliteCacheBackend(
        path=tmp_path / "cache" / "tierql.db",
        maxsize=5,
        default_ttl=timedelta(hours=1),
        clock=clock,
    )
    async with backend:
        yield backend


class TestSqliteCacheBackend:
    """Tests for SqliteCacheBackend."""

    async def test_set_and_get(self, backend: SqliteCacheBackend, clock) -> None:
        await backend.set("orders_T1", b"\x00binary")

        entry = await backend.get("orders_T1")

        assert entry is not None
        assert entry.value == b"\x00binary"
        assert entry.tier == CacheTier.L2
        assert entry.written_at == clock()
        assert entry.expires_at == clock() + 3600

    async def test_overwrite(self, backend: SqliteCacheBackend) -> None:
        await backend.set("k", b"old")
        await backend.set("k", b"new")

        entry = await backend.get("k")
        assert entry is not None
        assert entry.value == b"new"

    async def test_expired_row_removed_on_read(self, backend: SqliteCacheBackend, clock) -> None:
        await backend.set("k", b"v", ttl=timedelta(seconds=1))
        clock.advance(1)

        assert await backend.get("k") is None
        assert await backend.keys() == []

    async def test_delete_and_delete_many(self, backend: SqliteCacheBackend) -> None:
        for key in ("a", "b", "c"):
            await backend.set(key, b"x")

        assert await backend.delete("a") is True
        assert await backend.delete("a") is False
        assert await backend.delete_many(["b", "c", "missing"]) == 2
        assert await backend.keys() == []

    async def test_delete_pattern_uses_glob(self, backend: SqliteCacheBackend) -> None:
        await backend.set("orders_T1", b"x")
        await backend.set("orders_T1:v:abc", b"x")
        await backend.set("users_T1", b"x")

        assert await backend.delete_pattern("orders_T1:*") == 1
        assert sorted(await backend.keys()) == ["orders_T1", "users_T1"]
        assert sorted(await backend.keys("*_T1")) == ["orders_T1", "users_T1"]

    async def test_clear(self, backend: SqliteCacheBackend) -> None:
        await backend.set("a", b"x")

        await backend.clear()

        assert await backend.exists("a") is False

    async def test_capacity_trims_oldest(self, backend: SqliteCacheBackend, clock) -> None:
        for index in range(7):
            await backend.set(f"k{index}", b"x")
            clock.advance(1)

        assert sorted(await backend.keys()) == ["k2", "k3", "k4", "k5", "k6"]
        assert backend.evictions == 2

    async def test_purge_expired(self, backend: SqliteCacheBackend, clock) -> None:
        await backend.set("short", b"x", ttl=timedelta(seconds=1))
        await backend.set("long", b"x")
        clock.advance(2)

        assert await backend.purge_expired() == 1
        assert await backend.keys() == ["long"]

    async def test_persists_across_connections(self, tmp_path, clock) -> None:
        path = tmp_path / "persist.db"
        async with SqliteCacheBackend(path, clock=clock) as first:
            await first.set("k", b"kept")

        async with SqliteCacheBackend(path, clock=clock) as second:
            entry = await second.get("k")

        assert entry is not None
        assert entry.value == b"kept"
