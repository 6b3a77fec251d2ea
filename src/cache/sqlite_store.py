# src/cache/sqlite_store.py - v1
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3. Entries are keyed by fingerprint; a secondary index
on last_accessed_at keeps recency-ordered eviction scans cheap.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    fingerprint TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    size_bytes INTEGER NOT NULL,
    access_count INTEGER NOT NULL DEFAULT 0,
    last_accessed_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_last_accessed ON cache_entries(last_accessed_at);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries WHERE fingerprint = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return CacheEntry(**json.loads(row[0]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_entries
               (fingerprint, data, size_bytes, access_count, last_accessed_at)
               VALUES (?, ?, ?, ?, ?)""",
            (
                key,
                entry.model_dump_json(),
                entry.size_bytes,
                entry.access_count,
                entry.last_accessed_at.isoformat(),
            ),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        self._conn.execute("DELETE FROM cache_entries WHERE fingerprint = ?", (key,))
        self._conn.commit()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries, least recently accessed first."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_entries ORDER BY last_accessed_at ASC"
        )
        entries: list[CacheEntry] = []
        for row in cursor.fetchall():
            try:
                entries.append(CacheEntry(**json.loads(row[0])))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable cache row: %s", e)
        return entries

    async def clear(self) -> None:
        self._conn.execute("DELETE FROM cache_entries")
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
