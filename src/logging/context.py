# src/logging/context.py - v1
"""Contextual logging support: attach fingerprint, request, stage and backend to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per orchestrated request; asyncio tasks inherit a copy on creation.
_fingerprint: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "fingerprint", default=None
)
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_backend: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "backend", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    fingerprint: str | None = None
    request_id: str | None = None
    stage: str | None = None
    backend: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        fingerprint=_fingerprint.get(),
        request_id=_request_id.get(),
        stage=_stage.get(),
        backend=_backend.get(),
    )


def set_request_context(fingerprint: str, request_id: str) -> None:
    """Set request-level context (called once per orchestrated request)."""
    _fingerprint.set(fingerprint)
    _request_id.set(request_id)


def set_stage_context(stage: str | None) -> None:
    """Set the pipeline stage currently executing."""
    _stage.set(stage)


def set_backend_context(backend: str | None) -> None:
    """Set the AI backend serving the current call."""
    _backend.set(backend)


def clear_context() -> None:
    """Reset all context variables."""
    _fingerprint.set(None)
    _request_id.set(None)
    _stage.set(None)
    _backend.set(None)
