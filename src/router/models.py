# src/router/models.py - v1
"""Router types: per-backend health record and backend handles."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from codexplain.core.models import BackendKind
from codexplain.llm.base_client import BaseLLMClient


class ServiceHealth(BaseModel):
    """Health of one AI backend, mutated after every call attempt."""

    name: str
    kind: BackendKind
    available: bool = True
    recent_latency_ms: float = 0.0
    consecutive_failures: int = 0
    opened_at: datetime | None = None
    last_failure_at: datetime | None = None
    total_calls: int = 0
    total_failures: int = 0


@dataclass(frozen=True)
class BackendHandle:
    """A routable backend: its name, where it runs and its client."""

    name: str
    kind: BackendKind
    client: BaseLLMClient

    @property
    def is_cloud(self) -> bool:
        return self.kind == BackendKind.CLOUD
