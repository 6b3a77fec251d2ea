# src/router/health.py - v1
"""Per-backend health tracking with a circuit breaker.

Updates are synchronous and keyed by backend name, so under asyncio each
record() is atomic and backends never contend with each other.

Circuit states, derived from the record:
  closed     consecutive_failures < threshold
  open       threshold reached, cooldown not yet elapsed (not eligible)
  half-open  cooldown elapsed; the next call is a probe. One success
             closes the circuit, one failure re-opens it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from codexplain.core.models import BackendKind
from codexplain.router.models import ServiceHealth

logger = logging.getLogger(__name__)

# Weight of the newest sample in the latency moving average.
_LATENCY_ALPHA = 0.3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthTracker:
    """Tracks ServiceHealth for every registered backend.

    Args:
        failure_threshold: Consecutive failures that open the circuit.
        cooldown_seconds: Time an open circuit stays open.
        latency_reference_ms: Latency at which the latency weight is 0.5.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60.0,
        latency_reference_ms: float = 5000.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._threshold = failure_threshold
        self._cooldown = cooldown_seconds
        self._latency_ref = latency_reference_ms
        self._clock = clock
        self._health: dict[str, ServiceHealth] = {}

    def register(self, name: str, kind: BackendKind) -> None:
        self._health.setdefault(name, ServiceHealth(name=name, kind=kind))

    def get(self, name: str) -> ServiceHealth:
        try:
            return self._health[name]
        except KeyError:
            raise KeyError(f"Unknown backend: {name!r}") from None

    def record(self, name: str, success: bool, latency_ms: float) -> ServiceHealth:
        """Apply one call outcome to a backend's health."""
        health = self.get(name)
        health.total_calls += 1
        if health.total_calls == 1 or health.recent_latency_ms == 0:
            health.recent_latency_ms = float(latency_ms)
        else:
            health.recent_latency_ms = (
                _LATENCY_ALPHA * latency_ms
                + (1 - _LATENCY_ALPHA) * health.recent_latency_ms
            )

        if success:
            if not health.available:
                logger.info("Backend '%s' recovered, circuit closed", name)
            health.consecutive_failures = 0
            health.available = True
            health.opened_at = None
            return health

        now = self._clock()
        health.total_failures += 1
        health.consecutive_failures += 1
        health.last_failure_at = now
        if health.consecutive_failures >= self._threshold:
            if health.available:
                logger.warning(
                    "Backend '%s' failed %d consecutive times, circuit opened for %.0fs",
                    name, health.consecutive_failures, self._cooldown,
                )
            else:
                logger.warning("Backend '%s' probe failed, circuit re-opened", name)
            health.available = False
            health.opened_at = now
        return health

    def is_available(self, name: str) -> bool:
        """True when the circuit is closed or half-open."""
        health = self.get(name)
        return health.available or self._cooldown_elapsed(health.opened_at)

    def probe_due(self, name: str) -> bool:
        """True when a failing backend has rested for a full cooldown.

        Covers both the half-open circuit and a closed circuit whose
        score sank below the routing threshold, so that a backend
        skipped for a low score is eventually tried again.
        """
        health = self.get(name)
        if health.consecutive_failures == 0:
            return False
        return self._cooldown_elapsed(health.last_failure_at)

    def score(self, name: str) -> float:
        """Health score in [0, 1]; 0 while the circuit is open.

        score = 1 / (1 + consecutive_failures) * ref / (ref + latency)
        """
        if not self.is_available(name):
            return 0.0
        health = self.get(name)
        failure_weight = 1.0 / (1 + health.consecutive_failures)
        latency_weight = self._latency_ref / (self._latency_ref + health.recent_latency_ms)
        return failure_weight * latency_weight

    def snapshot(self) -> list[ServiceHealth]:
        """Copies of every backend's health, availability made current."""
        result = []
        for name, health in self._health.items():
            copy = health.model_copy()
            copy.available = self.is_available(name)
            result.append(copy)
        return result

    def _cooldown_elapsed(self, since: datetime | None) -> bool:
        if since is None:
            return False
        return (self._clock() - since).total_seconds() >= self._cooldown
