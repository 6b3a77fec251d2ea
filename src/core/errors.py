# src/core/errors.py - v1
"""Error taxonomy surfaced by the router, pipeline and cache.

Every error knows whether it is retryable, whether a fallback backend
could serve the request, and what the user can do about it. External
callers only ever see the ``ErrorResponse`` payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Error payload rendered by editor adapters."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    message: str
    details: dict[str, Any] | None = None
    suggestions: list[str] = Field(default_factory=list)
    retryable: bool = False
    fallback_available: bool = Field(default=False, alias="fallbackAvailable")


class ExplainerError(Exception):
    """Base class for all classified errors."""

    code = "INTERNAL_ERROR"
    retryable = False
    default_suggestions: tuple[str, ...] = ()

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        suggestions: list[str] | None = None,
        retryable: bool | None = None,
        fallback_available: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.suggestions = (
            list(suggestions) if suggestions is not None else list(self.default_suggestions)
        )
        if retryable is not None:
            self.retryable = retryable
        self.fallback_available = fallback_available

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details,
            suggestions=self.suggestions,
            retryable=self.retryable,
            fallback_available=self.fallback_available,
        )


class AnalysisFailed(ExplainerError):
    """Code could not be analyzed (bad syntax, unsupported language)."""

    code = "ANALYSIS_FAILED"
    default_suggestions = (
        "Check that the selection is complete, syntactically valid code.",
        "Make sure the source language is supported.",
    )


class ServiceUnavailable(ExplainerError):
    """No eligible AI backend for the request."""

    code = "SERVICE_UNAVAILABLE"
    default_suggestions = (
        "Check your network connection or switch AI mode to 'hybrid' or 'local'.",
    )


class TransientServiceError(ExplainerError):
    """Timeout, rate limit or server-side failure of an AI backend."""

    code = "TRANSIENT_SERVICE_ERROR"
    retryable = True
    default_suggestions = ("Try again in a moment.",)


class AuthError(ExplainerError):
    """AI backend rejected the credentials."""

    code = "AUTH_ERROR"
    default_suggestions = (
        "Check the API key configured for the cloud provider.",
        "Switch AI mode to 'local' to use the local model instead.",
    )


class InvalidRequestError(ExplainerError):
    """AI backend rejected the request as malformed."""

    code = "INVALID_REQUEST"
    default_suggestions = ("Try a smaller code selection.",)


class CacheIOError(ExplainerError):
    """Cache persistence failure. Never fails a pipeline."""

    code = "CACHE_IO_ERROR"


class SynthesisError(ExplainerError):
    """Media synthesis backend failed."""

    code = "SYNTHESIS_ERROR"
    default_suggestions = ("Try generating audio-only content.",)


class PipelineCancelled(ExplainerError):
    """Generation was cancelled before completion."""

    code = "CANCELLED"
    retryable = True


class SessionNotFound(ExplainerError):
    """Q&A session does not exist or was closed."""

    code = "SESSION_NOT_FOUND"
    default_suggestions = ("Open the explanation again to start a new Q&A session.",)


def error_response_from(exc: BaseException) -> ErrorResponse:
    """Build the external error payload for any exception."""
    if isinstance(exc, ExplainerError):
        return exc.to_response()
    return ErrorResponse(
        code=ExplainerError.code,
        message=str(exc) or type(exc).__name__,
        details={"type": type(exc).__name__},
        suggestions=["Try again. If the problem persists, check the logs."],
        retryable=False,
        fallback_available=False,
    )
