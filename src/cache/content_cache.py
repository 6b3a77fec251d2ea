# src/cache/content_cache.py - v1
"""Content-addressed cache with a strict size budget.

Wraps a BaseCacheStore with access accounting, LRU eviction (access
count breaks ties) and per-fingerprint locking. Store failures never
reach callers: they are logged as CacheIOError and degrade to a miss
on read and to "not cached" on write.

The size ledger and recency index live in memory and are rebuilt from
the store on first use. Eviction runs inside put, after the entry's own
lock is released, taking each victim's lock in turn.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.models import (
    CacheEntry,
    CacheEntryMetadata,
    artifact_size,
)
from codexplain.core.errors import CacheIOError
from codexplain.core.models import ExplanationContent

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[str, str], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _IndexRecord:
    __slots__ = ("size_bytes", "last_accessed_at", "access_count", "artifact_id")

    def __init__(
        self,
        size_bytes: int,
        last_accessed_at: datetime,
        access_count: int,
        artifact_id: str,
    ) -> None:
        self.size_bytes = size_bytes
        self.last_accessed_at = last_accessed_at
        self.access_count = access_count
        self.artifact_id = artifact_id

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> _IndexRecord:
        return cls(
            entry.size_bytes,
            entry.last_accessed_at,
            entry.access_count,
            entry.artifact.id,
        )


class ContentCache:
    """Fingerprint -> ExplanationContent cache.

    Args:
        store: Persistence backend.
        max_bytes: Size budget. Total cached size never exceeds it after
            a completed put.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        store: BaseCacheStore,
        max_bytes: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        self._store = store
        self._max_bytes = max_bytes
        self._clock = clock
        self._index: dict[str, _IndexRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[InvalidationListener] = []
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @property
    def total_bytes(self) -> int:
        """Current size of all indexed entries."""
        return sum(r.size_bytes for r in self._index.values())

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Register a callback receiving (fingerprint, artifact_id) on removal."""
        self._listeners.append(listener)

    # --- Operations ---

    async def get(self, fingerprint: str) -> CacheEntry | None:
        """Return the entry for a fingerprint, recording the access.

        Never waits on generation work. A store failure is a miss.
        """
        await self._ensure_loaded()
        async with self._lock_for(fingerprint):
            try:
                entry = await self._store.get(fingerprint)
            except Exception as e:
                self._log_io_error("get", fingerprint, e)
                return None
            if entry is None:
                self._index.pop(fingerprint, None)
                return None

            entry = entry.model_copy(
                update={
                    "access_count": entry.access_count + 1,
                    "last_accessed_at": self._clock(),
                }
            )
            try:
                await self._store.put(fingerprint, entry)
            except Exception as e:
                # The hit is still served; only the access stats are lost.
                self._log_io_error("touch", fingerprint, e)
            self._index[fingerprint] = _IndexRecord.from_entry(entry)

        logger.debug(
            "Cache hit %s (access_count=%d)", fingerprint[:12], entry.access_count
        )
        return entry

    async def put(
        self,
        fingerprint: str,
        artifact: ExplanationContent,
        snippet_preview: str = "",
    ) -> bool:
        """Insert or replace an entry, then evict down to the budget.

        Returns:
            True when the artifact was stored.
        """
        await self._ensure_loaded()
        size = artifact_size(artifact)
        if size > self._max_bytes:
            logger.warning(
                "Artifact for %s is %d bytes, larger than the cache budget "
                "(%d bytes); not cached",
                fingerprint[:12],
                size,
                self._max_bytes,
            )
            return False

        now = self._clock()
        entry = CacheEntry(
            fingerprint=fingerprint,
            artifact=artifact,
            snippet_preview=snippet_preview,
            created_at=now,
            last_accessed_at=now,
            access_count=0,
            size_bytes=size,
        )

        async with self._lock_for(fingerprint):
            try:
                await self._store.put(fingerprint, entry)
            except Exception as e:
                self._log_io_error("put", fingerprint, e)
                return False
            self._index[fingerprint] = _IndexRecord.from_entry(entry)

        logger.debug("Cached %s (%d bytes)", fingerprint[:12], size)
        await self._evict_to_budget()
        return fingerprint in self._index

    async def invalidate(self, fingerprint: str) -> None:
        """Remove an entry. No-op when absent."""
        await self._ensure_loaded()
        async with self._lock_for(fingerprint):
            removed = await self._remove(fingerprint, reason="invalidated")
        if removed:
            logger.info("Invalidated cache entry %s", fingerprint[:12])

    async def clear(self) -> None:
        """Remove every entry."""
        await self._ensure_loaded()
        removed = list(self._index.items())
        try:
            await self._store.clear()
        except Exception as e:
            self._log_io_error("clear", "*", e)
        self._index.clear()
        for fingerprint, record in removed:
            self._notify(fingerprint, record.artifact_id)
        logger.info("Cleared cache (%d entries)", len(removed))

    async def list(self) -> list[CacheEntryMetadata]:
        """Snapshot of entry metadata, most recently accessed first."""
        await self._ensure_loaded()
        try:
            entries = await self._store.list_entries()
        except Exception as e:
            self._log_io_error("list", "*", e)
            return []
        entries.sort(
            key=lambda e: (e.last_accessed_at, e.access_count), reverse=True
        )
        return [e.metadata() for e in entries]

    # --- Internals ---

    def _lock_for(self, fingerprint: str) -> asyncio.Lock:
        lock = self._locks.get(fingerprint)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[fingerprint] = lock
        return lock

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            try:
                entries = await self._store.list_entries()
            except Exception as e:
                self._log_io_error("load", "*", e)
                return
            for entry in entries:
                self._index[entry.fingerprint] = _IndexRecord.from_entry(entry)
            self._loaded = True
            logger.debug(
                "Loaded cache index: %d entries, %d bytes",
                len(self._index),
                self.total_bytes,
            )
        await self._evict_to_budget()

    async def _evict_to_budget(self) -> None:
        while self.total_bytes > self._max_bytes:
            victim = min(
                self._index,
                key=lambda k: (
                    self._index[k].last_accessed_at,
                    self._index[k].access_count,
                ),
            )
            async with self._lock_for(victim):
                await self._remove(victim, reason="evicted")

    async def _remove(self, fingerprint: str, reason: str) -> bool:
        """Drop an entry from index and store. Caller holds its lock."""
        record = self._index.pop(fingerprint, None)
        try:
            await self._store.delete(fingerprint)
        except Exception as e:
            self._log_io_error("delete", fingerprint, e)
        if record is None:
            return False
        if reason == "evicted":
            logger.info(
                "Evicted cache entry %s (%d bytes)", fingerprint[:12], record.size_bytes
            )
        self._notify(fingerprint, record.artifact_id)
        return True

    def _notify(self, fingerprint: str, artifact_id: str) -> None:
        for listener in self._listeners:
            try:
                listener(fingerprint, artifact_id)
            except Exception:
                logger.exception(
                    "Invalidation listener failed for %s", fingerprint[:12]
                )

    @staticmethod
    def _log_io_error(operation: str, fingerprint: str, exc: Exception) -> None:
        error = CacheIOError(
            f"Cache {operation} failed: {exc}",
            details={"operation": operation, "fingerprint": fingerprint},
        )
        logger.warning("%s", error.message, extra={"data": error.details})
