# tests/integration/conftest.py - v1
"""Fixtures for integration tests over persistent cache stores.

Every backend is opened twice over the same location to check that
entries survive a restart. Redis runs only when CODEXPLAIN_TEST_REDIS_URL
points at a disposable server.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import pytest_asyncio

from codexplain.cache.base_cache_store import BaseCacheStore
from codexplain.cache.json_store import JsonCacheStore
from codexplain.cache.sqlite_store import SqliteCacheStore

REDIS_URL_ENV = "CODEXPLAIN_TEST_REDIS_URL"


def pytest_collection_modifyitems(config, items):
    """Tag every test under tests/integration with the integration marker."""
    root = Path(__file__).parent
    for item in items:
        if root in Path(str(item.fspath)).parents:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(params=["json", "sqlite", "redis"])
def open_store(request, tmp_path) -> Iterator[Callable[[], BaseCacheStore]]:
    """Factory opening a store over one fixed location, closed at teardown."""
    backend = request.param
    opened: list[BaseCacheStore] = []

    if backend == "redis" and not os.environ.get(REDIS_URL_ENV):
        pytest.skip(f"{REDIS_URL_ENV} not set")

    def _open() -> BaseCacheStore:
        if backend == "json":
            store: BaseCacheStore = JsonCacheStore(cache_root=tmp_path / "cache")
        elif backend == "sqlite":
            store = SqliteCacheStore(db_path=tmp_path / "cache" / "codexplain_cache.db")
        else:
            from codexplain.cache.redis_store import RedisCacheStore

            store = RedisCacheStore(redis_url=os.environ[REDIS_URL_ENV])
        opened.append(store)
        return store

    yield _open

    for store in opened:
        close = getattr(store, "close", None)
        if close is not None:
            close()


@pytest_asyncio.fixture
async def clean_store(open_store) -> BaseCacheStore:
    store = open_store()
    await store.clear()
    return store
