# src/cache/memory_store.py - v1
"""In-process cache store (CACHE_BACKEND=memory).

Nothing survives a restart. Entries are deep-copied on the way in and
out so callers never share mutable state with the store.
"""

from __future__ import annotations

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.models import CacheEntry


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        return entry.model_copy(deep=True) if entry is not None else None

    async def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry.model_copy(deep=True)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_entries(self) -> list[CacheEntry]:
        return [e.model_copy(deep=True) for e in self._entries.values()]

    async def clear(self) -> None:
        self._entries.clear()
