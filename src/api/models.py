# src/api/models.py - v1
"""Public API result models returned to editor adapters."""

from __future__ import annotations

from pydantic import BaseModel

from codexplain.core.errors import ErrorResponse
from codexplain.core.models import ExplanationContent, QAExchange


class ExplainResult(BaseModel):
    """Either the explanation or the error payload to render."""

    fingerprint: str
    content: ExplanationContent | None = None
    error: ErrorResponse | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AskResult(BaseModel):
    """Either the Q&A exchange or the error payload to render."""

    session_id: str
    exchange: QAExchange | None = None
    error: ErrorResponse | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
