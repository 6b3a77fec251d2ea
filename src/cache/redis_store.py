# src/cache/redis_store.py - v1
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires the 'redis' package. Suitable for multi-instance deployments
sharing one cache. A sorted set scored by last access time indexes the
keys for recency-ordered scans.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_KEY_PREFIX = "codexplain:cache:"
_INDEX_KEY = "codexplain:cache:__index__"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store for distributed deployments."""

    def __init__(self, redis_url: str) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key."""
        data = self._client.get(f"{_KEY_PREFIX}{key}")
        if data is None:
            return None
        try:
            return CacheEntry(**json.loads(data))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

    async def put(self, key: str, entry: CacheEntry) -> None:
        """Store a cache entry and index it by last access time."""
        pipe = self._client.pipeline()
        pipe.set(f"{_KEY_PREFIX}{key}", entry.model_dump_json())
        pipe.zadd(_INDEX_KEY, {key: entry.last_accessed_at.timestamp()})
        pipe.execute()

    async def delete(self, key: str) -> None:
        """Remove a cache entry."""
        pipe = self._client.pipeline()
        pipe.delete(f"{_KEY_PREFIX}{key}")
        pipe.zrem(_INDEX_KEY, key)
        pipe.execute()

    async def list_entries(self) -> list[CacheEntry]:
        """List all cached entries, least recently accessed first."""
        keys = self._client.zrange(_INDEX_KEY, 0, -1)
        entries: list[CacheEntry] = []
        for key in keys:
            entry = await self.get(key)
            if entry is not None:
                entries.append(entry)
        return entries

    async def clear(self) -> None:
        keys = self._client.zrange(_INDEX_KEY, 0, -1)
        pipe = self._client.pipeline()
        for key in keys:
            pipe.delete(f"{_KEY_PREFIX}{key}")
        pipe.delete(_INDEX_KEY)
        pipe.execute()

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
