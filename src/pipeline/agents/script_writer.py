# src/pipeline/agents/script_writer.py - v1
"""Script writer agent: the narration transcript of the explanation.

Mandatory stage. For very large inputs the plan switches to summary
mode and the agent asks for a file-level summary instead of a
walkthrough.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from codexplain.core.errors import TransientServiceError
from codexplain.core.models import RequestKind
from codexplain.pipeline import prompts
from codexplain.pipeline.plugin_kit.base_agent import BaseAgent
from codexplain.pipeline.plugin_kit.models import AgentContext, AgentOutput

if TYPE_CHECKING:
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


class ScriptWriterAgent(BaseAgent):
    """Writes the narration script for a code snippet."""

    @property
    def name(self) -> str:
        return "script_writer"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Narration script (or file-level summary) for the explanation"

    @property
    def request_kind(self) -> RequestKind:
        return RequestKind.EXPLAIN

    def build_prompt(self, ctx: AgentContext) -> str:
        analysis = ctx.analysis
        return prompts.SCRIPT_PROMPT.format(
            source_language=ctx.request.source_language,
            target_language=ctx.request.target_language,
            target_words=ctx.target_duration_s * 150 // 60,
            target_minutes=round(ctx.target_duration_s / 60, 1),
            line_count=analysis.line_count,
            function_count=analysis.function_count,
            class_count=analysis.class_count,
            summary=analysis.summary or "(none)",
            mode_instruction=(
                prompts.SUMMARY_NARRATION if ctx.summary_mode else prompts.FULL_NARRATION
            ),
            code=prompts.fence(ctx.request.code, ctx.request.source_language),
        )

    async def execute(
        self,
        context: object,
        router: AIServiceRouter,
        call_logger: CallLogger | None = None,
    ) -> AgentOutput:
        if not isinstance(context, AgentContext):
            raise TypeError(f"Expected AgentContext, got {type(context)}")

        started = time.monotonic()
        prompt = self.build_prompt(context)
        response = await self._complete(
            router, prompt, prompts.SCRIPT_SYSTEM, call_logger, json_mode=True
        )
        parsed = self._parse_json(response.content)

        sections = [
            s for s in parsed.get("sections", [])
            if isinstance(s, dict) and str(s.get("narration", "")).strip()
        ]
        transcript = "\n\n".join(str(s["narration"]).strip() for s in sections)
        if not transcript:
            raise TransientServiceError(
                "Script writer returned an empty narration",
                details={"agent": self.name, "kind": "parse_error"},
            )

        output = AgentOutput(
            data={
                "title": str(parsed.get("title", "")),
                "sections": [str(s.get("heading", "")) for s in sections],
                "transcript": transcript,
                "summary_mode": context.summary_mode,
            },
            confidence=1.0,
            metadata=self._metadata(started, response, prompt),
        )
        output.confidence = self.validate_output(output)
        if output.confidence < 0.5:
            output.warnings.append("Narration is much shorter than planned")
        logger.debug(
            "Script written: %d sections, %d words",
            len(sections), len(transcript.split()),
        )
        return output

    def validate_output(self, output: AgentOutput) -> float:
        """Penalize narrations far below a minute of speech."""
        words = len(output.data.get("transcript", "").split())
        if words == 0:
            return 0.0
        if words < 150:
            return 0.4
        return 1.0
