# src/pipeline/plugin_kit/base_agent.py - v1
"""Standard agent interface for generation stages.

An agent turns an AgentContext into an AgentOutput through the router.
It never picks a backend itself: it names a request kind and the router
decides where the call goes.
"""

from __future__ import annotations

import hashlib
import json
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from codexplain.core.errors import TransientServiceError
from codexplain.core.models import RequestKind
from codexplain.llm.models import LLMResponse, Message
from codexplain.pipeline.plugin_kit.models import AgentMetadata, AgentOutput

if TYPE_CHECKING:
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.tracking.call_logger import CallLogger


class BaseAgent(ABC):
    """Standard interface for all generation agents."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique agent identifier (e.g., 'script_writer')."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Agent version (semver)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this agent does."""

    @property
    @abstractmethod
    def request_kind(self) -> RequestKind:
        """Capability requested from the router."""

    @abstractmethod
    async def execute(
        self,
        context: object,
        router: AIServiceRouter,
        call_logger: CallLogger | None = None,
    ) -> AgentOutput:
        """Execute the agent's logic.

        Args:
            context: AgentContext (or an agent-specific context model).
            router: Router resolving every AI call.
            call_logger: Optional per-run call tracking.
        """

    def validate_output(self, output: AgentOutput) -> float:
        """Self-validation returning confidence score (0.0-1.0).

        Override for custom validation logic.
        """
        return 1.0

    # --- Shared helpers ---

    async def _complete(
        self,
        router: AIServiceRouter,
        prompt: str,
        system: str,
        call_logger: CallLogger | None,
        json_mode: bool = False,
    ) -> LLMResponse:
        return await router.complete(
            self.request_kind,
            [Message(role="user", content=prompt)],
            system=system,
            json_mode=json_mode,
            call_logger=call_logger,
        )

    def _metadata(
        self,
        started: float,
        response: LLMResponse | None = None,
        prompt: str | None = None,
    ) -> AgentMetadata:
        return AgentMetadata(
            agent_name=self.name,
            agent_version=self.version,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            ai_calls=0 if response is None else 1,
            tokens_used=0 if response is None else response.total_tokens,
            backend=None if response is None else response.provider,
            prompt_hash=(
                hashlib.sha256(prompt.encode()).hexdigest()[:16] if prompt else None
            ),
        )

    def _parse_json(self, content: str) -> dict[str, Any]:
        """Parse a JSON object response, handling markdown fences.

        Raises:
            TransientServiceError: The response is not a JSON object. A
                malformed answer is worth another attempt.
        """
        text = content.strip()
        if text.startswith("```"):
            lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
            text = "\n".join(lines)
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            raise TransientServiceError(
                f"Agent '{self.name}' got a malformed JSON response: {e}",
                details={"agent": self.name, "kind": "parse_error"},
            ) from e
        if not isinstance(parsed, dict):
            raise TransientServiceError(
                f"Agent '{self.name}' expected a JSON object, got {type(parsed).__name__}",
                details={"agent": self.name, "kind": "parse_error"},
            )
        return parsed
