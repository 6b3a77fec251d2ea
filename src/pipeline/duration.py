# src/pipeline/duration.py - v1
"""Duration policy: a deterministic function of the analyzed line count.

  < 100 lines    2-5 minutes
  100-500 lines  5-10 minutes
  > 500 lines    up to 10 minutes, file-level summary instead of full narration
"""

from __future__ import annotations

import math
from dataclasses import dataclass

SMALL_MAX_LINES = 100
MEDIUM_MAX_LINES = 500
MAX_DURATION_S = 600
WORDS_PER_MINUTE = 150


@dataclass(frozen=True)
class DurationPlan:
    """Allowed duration range and narration target for one request."""

    min_s: int
    max_s: int
    target_s: int
    summary_mode: bool = False

    @property
    def target_words(self) -> int:
        return self.target_s * WORDS_PER_MINUTE // 60

    def clamp(self, seconds: float) -> int:
        """Clamp an estimate into the allowed range."""
        return int(min(max(math.ceil(seconds), self.min_s), self.max_s))


def plan_duration(line_count: int, duration_hint: int | None = None) -> DurationPlan:
    """Plan the explanation length for a snippet.

    Args:
        line_count: Analyzed line count.
        duration_hint: Optional analyzer estimate in seconds, clamped into range.
    """
    if line_count < SMALL_MAX_LINES:
        lo, hi, summary = 120, 300, False
        # Scale linearly across the range.
        target = lo + (hi - lo) * max(line_count, 0) // SMALL_MAX_LINES
    elif line_count <= MEDIUM_MAX_LINES:
        lo, hi, summary = 300, 600, False
        target = lo + (hi - lo) * (line_count - SMALL_MAX_LINES) // (
            MEDIUM_MAX_LINES - SMALL_MAX_LINES
        )
    else:
        lo, hi, summary = 300, MAX_DURATION_S, True
        target = MAX_DURATION_S

    if duration_hint is not None:
        target = min(max(duration_hint, lo), hi)
    return DurationPlan(min_s=lo, max_s=hi, target_s=target, summary_mode=summary)


def estimate_duration(transcript: str, plan: DurationPlan) -> int:
    """Spoken length of a transcript at 150 wpm, clamped into the plan."""
    words = len(transcript.split())
    return plan.clamp(words * 60 / WORDS_PER_MINUTE)
