# src/tracking/models.py - v1
"""Tracking domain models: AICallRecord and the per-run CallSummary."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AICallRecord(BaseModel):
    """Individual AI backend call attempt."""

    call_id: str
    timestamp: datetime
    kind: str
    backend: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int
    status: Literal["success", "retry", "failed"]
    retry_count: int = 0
    error: str | None = None


class CallSummary(BaseModel):
    """Aggregated view of the calls of one pipeline run."""

    total_calls: int = 0
    total_tokens: int = 0
    failures: int = 0
    calls_by_backend: dict[str, int] = Field(default_factory=dict)
    calls_by_kind: dict[str, int] = Field(default_factory=dict)
