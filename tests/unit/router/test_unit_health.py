# tests/unit/router/test_unit_health.py - v1
"""Tests for router/health.py - scoring and circuit breaker transitions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from codexplain.core.models import BackendKind
from codexplain.router.health import HealthTracker


class ManualClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 5, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def tracker(clock) -> HealthTracker:
    t = HealthTracker(failure_threshold=3, cooldown_seconds=60, clock=clock)
    t.register("anthropic", BackendKind.CLOUD)
    return t


class TestScore:
    def test_fresh_backend_scores_one(self, tracker):
        assert tracker.score("anthropic") == pytest.approx(1.0)

    def test_failures_lower_score(self, tracker):
        tracker.record("anthropic", False, 0)
        assert tracker.score("anthropic") == pytest.approx(0.5)
        tracker.record("anthropic", False, 0)
        assert tracker.score("anthropic") == pytest.approx(1 / 3)

    def test_latency_lowers_score(self, tracker):
        tracker.record("anthropic", True, 5000)
        assert tracker.score("anthropic") == pytest.approx(0.5)

    def test_latency_moving_average(self, tracker):
        tracker.record("anthropic", True, 1000)
        tracker.record("anthropic", True, 2000)
        assert tracker.get("anthropic").recent_latency_ms == pytest.approx(1300)

    def test_success_resets_failures(self, tracker):
        tracker.record("anthropic", False, 0)
        tracker.record("anthropic", True, 0)
        assert tracker.get("anthropic").consecutive_failures == 0
        assert tracker.score("anthropic") == pytest.approx(1.0)

    def test_unknown_backend(self, tracker):
        with pytest.raises(KeyError, match="Unknown backend"):
            tracker.score("nope")


class TestCircuit:
    def test_opens_at_threshold(self, tracker):
        for _ in range(3):
            tracker.record("anthropic", False, 0)
        health = tracker.get("anthropic")
        assert health.available is False
        assert health.opened_at is not None
        assert tracker.is_available("anthropic") is False
        assert tracker.score("anthropic") == 0.0

    def test_half_open_after_cooldown(self, tracker, clock):
        for _ in range(3):
            tracker.record("anthropic", False, 0)
        clock.advance(59)
        assert tracker.is_available("anthropic") is False
        clock.advance(1)
        assert tracker.is_available("anthropic") is True

    def test_probe_success_closes(self, tracker, clock):
        for _ in range(3):
            tracker.record("anthropic", False, 0)
        clock.advance(60)
        tracker.record("anthropic", True, 10)
        health = tracker.get("anthropic")
        assert health.available is True
        assert health.consecutive_failures == 0
        assert health.opened_at is None

    def test_probe_failure_reopens(self, tracker, clock):
        for _ in range(3):
            tracker.record("anthropic", False, 0)
        clock.advance(60)
        tracker.record("anthropic", False, 0)
        assert tracker.is_available("anthropic") is False
        clock.advance(30)
        assert tracker.is_available("anthropic") is False

    def test_counters(self, tracker):
        tracker.record("anthropic", True, 0)
        tracker.record("anthropic", False, 0)
        health = tracker.get("anthropic")
        assert health.total_calls == 2
        assert health.total_failures == 1


class TestProbeDue:
    def test_healthy_backend_never_due(self, tracker, clock):
        clock.advance(3600)
        assert tracker.probe_due("anthropic") is False

    def test_due_after_cooldown_since_last_failure(self, tracker, clock):
        tracker.record("anthropic", False, 0)
        assert tracker.probe_due("anthropic") is False
        clock.advance(60)
        assert tracker.probe_due("anthropic") is True


def test_snapshot_reports_current_availability(tracker, clock):
    for _ in range(3):
        tracker.record("anthropic", False, 0)
    clock.advance(60)
    (snap,) = tracker.snapshot()
    assert snap.available is True
    # The stored record is left untouched.
    assert tracker.get("anthropic").available is False
