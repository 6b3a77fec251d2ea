# src/router/service_router.py - v1
"""AI service router: backend selection, per-call retry and fallback.

The router is the only caller of AI backend clients. It resolves the
effective routing mode, picks a backend by health score, runs the call
through the retry policy, records every attempt, and in hybrid mode
falls back once to the local backend when the cloud backend fails.

Privacy: with privacy mode on, or in local mode, no cloud backend is
ever selected and a final guard refuses to hand code to a cloud client.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from codexplain.core.errors import ServiceUnavailable, TransientServiceError
from codexplain.core.models import AIMode, BackendKind, RequestKind
from codexplain.llm.models import LLMResponse, Message
from codexplain.llm.retry import RetryPolicy, with_retry
from codexplain.logging.context import set_backend_context
from codexplain.router.health import HealthTracker
from codexplain.router.models import BackendHandle, ServiceHealth

if TYPE_CHECKING:
    from codexplain.config.settings import Settings
    from codexplain.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class PrivacyViolation(AssertionError):
    """A cloud backend was about to receive code under a privacy constraint."""


class AIServiceRouter:
    """Selects among cloud and local backends with health-aware fallback.

    Args:
        backends: Routable backends. At most one local backend is used.
        mode: Configured routing mode.
        privacy_mode: Forbid cloud backends for every request.
        health: Health tracker shared by all calls.
        health_threshold: Minimum cloud score for hybrid mode to pick cloud.
        retry_policy: Attempt budget per call.
        temperature: Sampling temperature passed to backends.
        max_tokens: Completion budget passed to backends.
    """

    def __init__(
        self,
        backends: list[BackendHandle],
        mode: AIMode = AIMode.HYBRID,
        privacy_mode: bool = False,
        health: HealthTracker | None = None,
        health_threshold: float = 0.2,
        retry_policy: RetryPolicy | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> None:
        self._mode = AIMode(mode)
        self._privacy_mode = privacy_mode
        self._health = health or HealthTracker()
        self._threshold = health_threshold
        self._retry_policy = retry_policy or RetryPolicy()
        self._temperature = temperature
        self._max_tokens = max_tokens

        self._cloud: list[BackendHandle] = []
        self._local: BackendHandle | None = None
        for handle in backends:
            self._health.register(handle.name, handle.kind)
            if handle.is_cloud:
                self._cloud.append(handle)
            elif self._local is None:
                self._local = handle
            else:
                logger.warning("Ignoring extra local backend '%s'", handle.name)

    @classmethod
    def from_settings(cls, settings: Settings) -> AIServiceRouter:
        """Build a router and its backend handles from settings."""
        from codexplain.llm.client_factory import CLOUD_PROVIDERS, create_llm_client

        backends: list[BackendHandle] = []
        # Cloud clients are not even constructed when they can never be used.
        if settings.ai_mode != "local" and not settings.privacy_mode:
            for provider in settings.cloud_providers_list:
                backends.append(
                    BackendHandle(
                        name=provider,
                        kind=BackendKind.CLOUD,
                        client=create_llm_client(provider, settings=settings),
                    )
                )
        if settings.local_provider:
            local = settings.local_provider
            if local in CLOUD_PROVIDERS:
                raise ValueError(f"LOCAL_PROVIDER {local!r} is a cloud provider")
            backends.append(
                BackendHandle(
                    name=local,
                    kind=BackendKind.LOCAL,
                    client=create_llm_client(local, settings=settings),
                )
            )

        return cls(
            backends=backends,
            mode=AIMode(settings.ai_mode),
            privacy_mode=settings.privacy_mode,
            health=HealthTracker(
                failure_threshold=settings.router_failure_threshold,
                cooldown_seconds=settings.router_cooldown_seconds,
                latency_reference_ms=settings.router_latency_reference_ms,
            ),
            health_threshold=settings.router_health_threshold,
            retry_policy=RetryPolicy(
                max_attempts=settings.router_max_attempts,
                base_delay_s=settings.router_backoff_base_s,
                backoff_factor=settings.router_backoff_factor,
            ),
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    @property
    def mode(self) -> AIMode:
        return self._mode

    @property
    def health(self) -> HealthTracker:
        return self._health

    # --- Selection ---

    def effective_mode(self, preferred_mode: AIMode | str | None = None) -> AIMode:
        """Resolve the routing mode for one request.

        Privacy mode and a configured local mode cannot be overridden.
        """
        if self._privacy_mode or self._mode == AIMode.LOCAL:
            return AIMode.LOCAL
        if preferred_mode is None:
            return self._mode
        return AIMode(preferred_mode)

    def route(
        self,
        request_kind: RequestKind,
        preferred_mode: AIMode | str | None = None,
    ) -> BackendHandle:
        """Select a backend for a request.

        Raises:
            ServiceUnavailable: No eligible backend for the effective mode.
        """
        mode = self.effective_mode(preferred_mode)

        if mode == AIMode.LOCAL:
            return self._require_local(request_kind)

        best = self._best_cloud()
        if mode == AIMode.CLOUD:
            if best is None:
                raise ServiceUnavailable(
                    f"No healthy cloud backend for '{request_kind.value}'",
                    details={"mode": mode.value, "kind": request_kind.value},
                    retryable=False,
                    fallback_available=self._local is not None,
                )
            return best

        # hybrid
        if best is not None and (
            self._health.score(best.name) > self._threshold
            or self._health.probe_due(best.name)
        ):
            return best
        if self._local is not None:
            if best is not None:
                logger.info(
                    "Cloud backend '%s' score %.2f below %.2f, routing '%s' locally",
                    best.name, self._health.score(best.name), self._threshold,
                    request_kind.value,
                )
            return self._local
        if best is not None:
            return best
        raise ServiceUnavailable(
            f"No available backend for '{request_kind.value}'",
            details={"mode": mode.value, "kind": request_kind.value},
            retryable=False,
        )

    def record_outcome(
        self, backend: BackendHandle | str, success: bool, latency_ms: float
    ) -> ServiceHealth:
        """Update a backend's health after a call attempt."""
        name = backend.name if isinstance(backend, BackendHandle) else backend
        return self._health.record(name, success, latency_ms)

    def health_snapshot(self) -> list[ServiceHealth]:
        return self._health.snapshot()

    # --- Invocation ---

    async def complete(
        self,
        request_kind: RequestKind,
        messages: list[Message],
        system: str | None = None,
        json_mode: bool = False,
        preferred_mode: AIMode | str | None = None,
        call_logger: CallLogger | None = None,
    ) -> LLMResponse:
        """Route and run one completion, with retry and hybrid fallback.

        Raises:
            ServiceUnavailable: No eligible backend.
            TransientServiceError: Retry budget exhausted.
            AuthError, InvalidRequestError: Terminal backend failures.
        """
        mode = self.effective_mode(preferred_mode)
        handle = self.route(request_kind, mode)
        try:
            return await self._invoke(
                handle, mode, request_kind, messages, system, json_mode, call_logger
            )
        except (TransientServiceError, ServiceUnavailable) as e:
            if mode != AIMode.HYBRID or not handle.is_cloud or self._local is None:
                raise
            logger.warning(
                "Cloud backend '%s' failed for '%s' (%s), falling back to '%s'",
                handle.name, request_kind.value, e.code, self._local.name,
            )
            return await self._invoke(
                self._local, mode, request_kind, messages, system, json_mode, call_logger
            )

    async def _invoke(
        self,
        handle: BackendHandle,
        mode: AIMode,
        request_kind: RequestKind,
        messages: list[Message],
        system: str | None,
        json_mode: bool,
        call_logger: CallLogger | None,
    ) -> LLMResponse:
        if handle.is_cloud and (self._privacy_mode or mode == AIMode.LOCAL):
            raise PrivacyViolation(
                f"Refusing to send code to cloud backend '{handle.name}'"
            )

        set_backend_context(handle.name)
        failures = 0

        async def attempt() -> LLMResponse:
            nonlocal failures
            if not self._health.is_available(handle.name):
                raise ServiceUnavailable(
                    f"Backend '{handle.name}' circuit is open",
                    details={"backend": handle.name},
                    retryable=False,
                    fallback_available=handle.is_cloud and self._local is not None,
                )
            t0 = time.monotonic()
            try:
                response = await handle.client.complete(
                    messages,
                    system=system,
                    max_tokens=self._max_tokens,
                    temperature=self._temperature,
                    json_mode=json_mode,
                )
            except Exception as e:
                latency = int((time.monotonic() - t0) * 1000)
                self.record_outcome(handle, False, latency)
                if call_logger is not None:
                    call_logger.record_failure(
                        kind=request_kind.value,
                        backend=handle.name,
                        provider=handle.client.provider_name,
                        model=handle.client.model,
                        latency_ms=latency,
                        error=e,
                        retry_count=failures,
                    )
                failures += 1
                raise
            latency = response.latency_ms or int((time.monotonic() - t0) * 1000)
            self.record_outcome(handle, True, latency)
            if call_logger is not None:
                call_logger.record(
                    kind=request_kind.value,
                    backend=handle.name,
                    response=response,
                    status="success" if failures == 0 else "retry",
                    retry_count=failures,
                )
            return response

        return await with_retry(attempt, self._retry_policy, label=handle.name)

    # --- Helpers ---

    def _best_cloud(self) -> BackendHandle | None:
        candidates = [h for h in self._cloud if self._health.is_available(h.name)]
        if not candidates:
            return None
        # max() keeps the first of equal scores, so configured priority wins ties.
        return max(candidates, key=lambda h: self._health.score(h.name))

    def _require_local(self, request_kind: RequestKind) -> BackendHandle:
        if self._local is None:
            raise ServiceUnavailable(
                f"No local backend configured for '{request_kind.value}'",
                details={"mode": AIMode.LOCAL.value, "kind": request_kind.value},
                suggestions=["Install and start Ollama, or set LOCAL_PROVIDER."],
            )
        return self._local
