"""SQLite cache backend implementation."""

import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from pathlib import Path

import aiosqlite

from tierql.core.entities.cache_entry import CacheEntry, CacheTier

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    written_at REAL NOT NULL,
    expires_at REAL
);
CREATE INDEX IF NOT EXISTS idx_cache_entries_expires_at ON cache_entries (expires_at);
CREATE INDEX IF NOT EXISTS idx_cache_entries_written_at ON cache_entries (written_at);
"""


class SqliteCacheBackend:
    """Persistent cache tier stored in a SQLite file.

    Survives process restarts, which makes it the natural L2 tier. The
    connection is opened lazily on first use. When more than ``maxsize``
    entries are stored, the oldest writes are dropped first.
    """

    def __init__(
        self,
        path: str | Path = "tierql-cache.db",
        maxsize: int = 10000,
        default_ttl: timedelta | None = timedelta(hours=1),
        tier: CacheTier = CacheTier.L2,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the SQLite cache backend.

        Args:
            path: Database file, or ":memory:" for a throwaway database.
            maxsize: Maximum number of entries kept.
            default_ttl: TTL used when set() is called without one.
            tier: The tier this backend serves as.
            clock: Returns the current time in epoch seconds.
        """
        self.tier = tier
        self._path = str(path)
        self._maxsize = maxsize
        self._default_ttl = default_ttl
        self._clock = clock
        self._db: aiosqlite.Connection | None = None
        self.evictions = 0

    async def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(self._path)
            await db.executescript(_SCHEMA)
            await db.commit()
            self._db = db
        return self._db

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve the live entry stored under key.

        An expired row is deleted and reported as a miss.
        """
        db = await self._connection()
        async with db.execute(
            "SELECT value, written_at, expires_at FROM cache_entries WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        entry = CacheEntry(
            key=key,
            value=bytes(row[0]),
            tier=self.tier,
            written_at=row[1],
            expires_at=row[2],
        )
        if entry.is_expired(self._clock()):
            await self.delete(key)
            return None
        return entry

    async def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
    ) -> None:
        entry = CacheEntry.create(
            key=key,
            value=value,
            tier=self.tier,
            now=self._clock(),
            ttl=ttl if ttl is not None else self._default_ttl,
        )
        db = await self._connection()
        await db.execute(
            "INSERT OR REPLACE INTO cache_entries (key, value, written_at, expires_at) "
            "VALUES (?, ?, ?, ?)",
            (entry.key, entry.value, entry.written_at, entry.expires_at),
        )
        await self._trim(db)
        await db.commit()

    async def delete(self, key: str) -> bool:
        db = await self._connection()
        cursor = await db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        await db.commit()
        return cursor.rowcount > 0

    async def delete_many(self, keys: Iterable[str]) -> int:
        key_list = list(keys)
        if not key_list:
            return 0
        db = await self._connection()
        cursor = await db.executemany(
            "DELETE FROM cache_entries WHERE key = ?",
            [(key,) for key in key_list],
        )
        await db.commit()
        return max(cursor.rowcount, 0)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        db = await self._connection()
        await db.execute("DELETE FROM cache_entries")
        await db.commit()

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob-style pattern.

        SQLite's GLOB operator uses the same wildcards as fnmatch.
        """
        db = await self._connection()
        cursor = await db.execute("DELETE FROM cache_entries WHERE key GLOB ?", (pattern,))
        await db.commit()
        return cursor.rowcount

    async def keys(self, pattern: str = "*") -> list[str]:
        db = await self._connection()
        async with db.execute(
            "SELECT key FROM cache_entries "
            "WHERE key GLOB ? AND (expires_at IS NULL OR expires_at > ?)",
            (pattern, self._clock()),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def purge_expired(self) -> int:
        db = await self._connection()
        cursor = await db.execute(
            "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )
        await db.commit()
        return cursor.rowcount

    async def _trim(self, db: aiosqlite.Connection) -> None:
        """Drop the oldest writes beyond maxsize."""
        cursor = await db.execute(
            "DELETE FROM cache_entries WHERE key IN ("
            "SELECT key FROM cache_entries ORDER BY written_at DESC, rowid DESC LIMIT -1 OFFSET ?)",
            (self._maxsize,),
        )
        if cursor.rowcount > 0:
            self.evictions += cursor.rowcount

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> "SqliteCacheBackend":
        """Async context manager entry."""
        await self._connection()
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Async context manager exit."""
        await self.close()
