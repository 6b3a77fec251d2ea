# src/pipeline/agents/qa_responder.py - v1
"""Q&A agent: answers follow-up questions about explained content.

Not a pipeline stage. The Q&A session store calls it with the cached
artifact as read-only context and a window of recent exchanges.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from codexplain.core.models import CodeExample, Flowchart, QAExchange, RequestKind
from codexplain.pipeline import prompts
from codexplain.pipeline.plugin_kit.base_agent import BaseAgent
from codexplain.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.tracking.call_logger import CallLogger


class QAContext(BaseModel):
    """Inputs for one answer."""

    question: str
    code: str
    source_language: str = ""
    transcript: str = ""
    flowchart: Flowchart | None = None
    examples: list[CodeExample] | None = None
    history: list[QAExchange] = Field(default_factory=list)


class QAAgent(BaseAgent):
    """Answers a question over the explanation and conversation history."""

    @property
    def name(self) -> str:
        return "qa_responder"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Answers questions about explained code"

    @property
    def request_kind(self) -> RequestKind:
        return RequestKind.ANSWER

    def build_prompt(self, ctx: QAContext) -> str:
        extra: list[str] = []
        if ctx.flowchart is not None and not ctx.flowchart.is_trivial:
            steps = ", ".join(n.label for n in ctx.flowchart.nodes)
            extra.append(f"FLOWCHART STEPS: {steps}")
        for example in ctx.examples or []:
            extra.append(f"EXAMPLE IN {example.language.upper()}:\n{example.code}")

        history = "\n".join(
            f"Q: {x.question}\nA: {x.answer}" for x in ctx.history
        ) or "(none)"

        return prompts.QA_PROMPT.format(
            source_language=ctx.source_language or "unknown",
            code=prompts.fence(ctx.code, ctx.source_language),
            transcript=ctx.transcript or "(none)",
            extra_context="\n" + "\n\n".join(extra) + "\n" if extra else "",
            history=history,
            question=ctx.question,
        )

    async def execute(
        self,
        context: object,
        router: AIServiceRouter,
        call_logger: CallLogger | None = None,
    ) -> AgentOutput:
        if not isinstance(context, QAContext):
            raise TypeError(f"Expected QAContext, got {type(context)}")

        started = time.monotonic()
        prompt = self.build_prompt(context)
        response = await self._complete(router, prompt, prompts.QA_SYSTEM, call_logger)
        answer = response.content.strip()

        output = AgentOutput(
            data={"answer": answer},
            confidence=1.0,
            metadata=self._metadata(started, response, prompt),
        )
        output.confidence = self.validate_output(output)
        return output

    def validate_output(self, output: AgentOutput) -> float:
        return 1.0 if output.data.get("answer") else 0.0
