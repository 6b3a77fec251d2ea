# src/tracking/call_logger.py - v1
"""AI call logging: records every backend call attempt.

One CallLogger accumulates the attempts of one pipeline run (or one
Q&A exchange). The router writes into it; the orchestrator saves it.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

from codexplain.llm.models import LLMResponse
from codexplain.tracking.models import AICallRecord, CallSummary

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates AI call records during a pipeline run."""

    def __init__(self) -> None:
        self._records: list[AICallRecord] = []

    def record(
        self,
        kind: str,
        backend: str,
        response: LLMResponse,
        status: str = "success",
        retry_count: int = 0,
    ) -> AICallRecord:
        """Record a successful (or eventually successful) call.

        Args:
            kind: Request kind (e.g. "explain").
            backend: Backend name the router selected.
            response: Backend response with token usage.
            status: Call status (success, retry, failed).
            retry_count: Number of failed attempts before this one.
        """
        record = AICallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            kind=kind,
            backend=backend,
            provider=response.provider,
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            latency_ms=response.latency_ms,
            status=status,
            retry_count=retry_count,
        )
        self._records.append(record)
        return record

    def record_failure(
        self,
        kind: str,
        backend: str,
        provider: str,
        model: str,
        latency_ms: int,
        error: BaseException,
        retry_count: int = 0,
    ) -> AICallRecord:
        """Record a failed call attempt."""
        record = AICallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            kind=kind,
            backend=backend,
            provider=provider,
            model=model,
            latency_ms=latency_ms,
            status="failed",
            retry_count=retry_count,
            error=f"{type(error).__name__}: {error}",
        )
        self._records.append(record)
        return record

    @property
    def records(self) -> list[AICallRecord]:
        """All recorded calls."""
        return list(self._records)

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed across all calls."""
        return sum(r.total_tokens for r in self._records)

    @property
    def total_calls(self) -> int:
        """Total number of call attempts."""
        return len(self._records)

    def summary(self) -> CallSummary:
        return CallSummary(
            total_calls=self.total_calls,
            total_tokens=self.total_tokens,
            failures=sum(1 for r in self._records if r.status == "failed"),
            calls_by_backend=dict(Counter(r.backend for r in self._records)),
            calls_by_kind=dict(Counter(r.kind for r in self._records)),
        )

    def save(self, path: Path) -> None:
        """Save all records to a JSON Lines file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w") as f:
            for record in self._records:
                f.write(json.dumps(record.model_dump(), default=str) + "\n")
        logger.debug("Saved %d call records to %s", len(self._records), path)
