# src/pipeline/agents/example_generator.py - v1
"""Example agent: the explained code rewritten in other languages.

Optional stage. Examples in the source language itself are discarded.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from codexplain.core.errors import TransientServiceError
from codexplain.core.models import CodeExample, RequestKind
from codexplain.pipeline import prompts
from codexplain.pipeline.plugin_kit.base_agent import BaseAgent
from codexplain.pipeline.plugin_kit.models import AgentContext, AgentOutput

if TYPE_CHECKING:
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class ExampleAgent(BaseAgent):
    """Generates cross-language equivalents of the explained code."""

    def __init__(self, count: int = 2) -> None:
        self._count = count

    @property
    def name(self) -> str:
        return "example_generator"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Equivalent code in other programming languages"

    @property
    def request_kind(self) -> RequestKind:
        return RequestKind.EXAMPLES

    async def execute(
        self,
        context: object,
        router: AIServiceRouter,
        call_logger: CallLogger | None = None,
    ) -> AgentOutput:
        if not isinstance(context, AgentContext):
            raise TypeError(f"Expected AgentContext, got {type(context)}")

        started = time.monotonic()
        source = context.request.source_language
        prompt = prompts.EXAMPLES_PROMPT.format(
            source_language=source,
            count=self._count,
            target_language=context.request.target_language,
            code=prompts.fence(context.request.code, source),
        )
        response = await self._complete(
            router, prompt, prompts.EXAMPLES_SYSTEM, call_logger, json_mode=True
        )
        parsed = self._parse_json(response.content)

        examples: list[CodeExample] = []
        for raw in parsed.get("examples", []):
            if not isinstance(raw, dict) or not str(raw.get("code", "")).strip():
                continue
            language = str(raw.get("language", "")).strip()
            if not language or language.lower() == source.lower():
                continue
            examples.append(
                CodeExample(
                    language=language,
                    code=str(raw["code"]),
                    explanation=str(raw.get("explanation", "")),
                )
            )

        if not examples:
            raise TransientServiceError(
                "Example generator returned no usable examples",
                details={"agent": self.name, "kind": "parse_error"},
            )

        return AgentOutput(
            data={"examples": [e.model_dump() for e in examples[: self._count]]},
            confidence=1.0,
            metadata=self._metadata(started, response, prompt),
        )
