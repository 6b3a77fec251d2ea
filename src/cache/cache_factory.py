# src/cache/cache_factory.py - v1
"""Factory for cache store and content cache instantiation."""

from __future__ import annotations

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.content_cache import ContentCache
from codexplain.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.
    """
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        from codexplain.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore()

    if backend == "json":
        from codexplain.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=settings.cache_root)

    if backend == "sqlite":
        from codexplain.cache.sqlite_store import SqliteCacheStore
        db_path = settings.cache_root.expanduser() / "codexplain_cache.db"
        return SqliteCacheStore(db_path=db_path)

    if backend == "redis":
        from codexplain.cache.redis_store import RedisCacheStore
        if not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(redis_url=settings.cache_redis_url)

    raise ValueError(f"Unsupported cache backend: {backend!r}")


def create_content_cache(settings: Settings) -> ContentCache:
    """Build a ContentCache over the configured store and size budget."""
    return ContentCache(
        store=create_cache_store(settings),
        max_bytes=settings.cache_max_bytes,
    )
