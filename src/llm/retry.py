# src/llm/retry.py - v1
"""Per-call retry policy with exponential backoff.

Backend exceptions are classified once, here, into the error taxonomy:
transient kinds (rate limit, timeout, server error, connection) are
retried with backoff up to the attempt budget; terminal kinds (auth,
invalid request) are raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from codexplain.core.errors import (
    AuthError,
    ExplainerError,
    InvalidRequestError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_KINDS = frozenset(
    {"rate_limit", "timeout", "server_error", "connection", "parse_error", "unknown"}
)
TERMINAL_KINDS = frozenset({"auth", "invalid_request"})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget for one router call.

    ``max_attempts`` includes the first attempt.
    """

    max_attempts: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter: bool = True


def classify_error(error: BaseException) -> str:
    """Classify an exception into a retry error kind."""
    if isinstance(error, AuthError):
        return "auth"
    if isinstance(error, ExplainerError):
        kind = (error.details or {}).get("kind")
        if kind:
            return kind
        return "server_error" if error.retryable else "invalid_request"

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429:
            return "rate_limit"
        if status in (401, 403):
            return "auth"
        if status >= 500:
            return "server_error"
        if 400 <= status < 500:
            return "invalid_request"

    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "rate_limit"
    if "timeout" in name or "timed out" in msg or "timeout" in msg:
        return "timeout"
    if any(c in msg for c in ("401", "403", "unauthorized", "api key", "forbidden")):
        return "auth"
    if "authentication" in name or "permission" in name:
        return "auth"
    if any(c in msg for c in ("500", "502", "503", "504", "server error", "overloaded")):
        return "server_error"
    if "connect" in name or "connection" in msg:
        return "connection"
    if any(c in msg for c in ("400", "422", "invalid", "malformed", "bad request")):
        return "invalid_request"
    if "json" in msg or "parse" in msg or "decode" in msg:
        return "parse_error"
    return "unknown"


def is_transient(error: BaseException) -> bool:
    return classify_error(error) in TRANSIENT_KINDS


def to_service_error(error: BaseException, backend: str) -> ExplainerError:
    """Map a backend exception onto the error taxonomy."""
    if isinstance(error, ExplainerError):
        return error

    kind = classify_error(error)
    details = {"backend": backend, "kind": kind, "type": type(error).__name__}
    if kind == "auth":
        return AuthError(f"Backend '{backend}' rejected credentials: {error}", details=details)
    if kind == "invalid_request":
        return InvalidRequestError(
            f"Backend '{backend}' rejected the request: {error}", details=details
        )
    return TransientServiceError(f"Backend '{backend}' failed ({kind}): {error}", details=details)


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Compute delay after a given failed attempt (0-based)."""
    delay = policy.base_delay_s * (policy.backoff_factor ** attempt)
    if policy.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "unknown",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run an async call, retrying transient failures.

    Raises:
        AuthError, InvalidRequestError: Immediately, without retry.
        TransientServiceError: When the attempt budget is exhausted.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1
            error = to_service_error(e, label)
            if not error.retryable:
                logger.warning("Backend '%s' terminal failure: %s", label, error.message)
                raise error from e
            if attempt >= policy.max_attempts:
                if error.details is None:
                    error.details = {}
                error.details["attempts"] = attempt
                logger.warning(
                    "Backend '%s' failed after %d attempts: %s",
                    label, attempt, error.message,
                )
                raise error from e

            delay = compute_delay(policy, attempt - 1)
            logger.warning(
                "Backend '%s' - %s (attempt %d/%d), retrying in %.1fs",
                label, classify_error(e), attempt, policy.max_attempts, delay,
            )
            await sleep(delay)
