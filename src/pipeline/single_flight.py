# src/pipeline/single_flight.py - v1
"""At most one in-flight computation per key.

The first caller for a key starts the work as a task; later callers for
the same key await the same future. Each caller awaits through
asyncio.shield, so one caller being cancelled does not cancel the shared
work. The registry entry is removed as soon as the work settles, so the
next call after completion (or failure) starts fresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Registry of pending results keyed by string."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def do(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory`` for ``key`` unless a run is already pending.

        Every caller attached to the same run gets its result or its
        exception.
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
            logger.debug("Single-flight started for %s", key[:12])
        else:
            logger.debug("Single-flight joined for %s", key[:12])
        return await asyncio.shield(task)

    def cancel(self, key: str) -> bool:
        """Cancel the pending run for a key, if any."""
        task = self._tasks.get(key)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Consume the outcome so an abandoned failure is not reported as never retrieved.
        if not task.cancelled():
            task.exception()
