# src/pipeline/orchestrator.py - v2
"""Generation orchestrator: cache probe, single-flight and staged run.

Drives one explanation request:
  1. fingerprint the request, drop the stale entry of its location
  2. cache probe; a hit returns without running any stage
  3. on a miss, join or start the single in-flight run for the fingerprint
  4. Analyzing -> Scripting -> Flowcharting? -> Exemplifying? -> Synthesizing
  5. write the artifact through the cache and hand it to every caller

Mandatory stages get one extra attempt (configurable) for retryable
failures on top of the router's own retries. Optional stages degrade:
their section is omitted and the artifact is marked partial.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from codexplain.cache.fingerprint import (
    code_digest,
    compute_fingerprint,
    location_key,
    snippet_preview,
)
from codexplain.core.errors import (
    AnalysisFailed,
    ExplainerError,
    PipelineCancelled,
    TransientServiceError,
)
from codexplain.core.models import (
    CodeAnalysis,
    CodeExample,
    ExplanationContent,
    Flowchart,
    PipelineRequest,
)
from codexplain.logging.context import set_request_context, set_stage_context
from codexplain.pipeline.agents.example_generator import ExampleAgent
from codexplain.pipeline.agents.flowchart_builder import FlowchartAgent
from codexplain.pipeline.agents.script_writer import ScriptWriterAgent
from codexplain.pipeline.duration import DurationPlan, plan_duration
from codexplain.pipeline.location_tracker import LocationTracker
from codexplain.pipeline.plugin_kit.models import AgentContext
from codexplain.pipeline.single_flight import SingleFlight
from codexplain.pipeline.state import (
    PipelineState,
    Stage,
    StageOutcome,
    advance,
    is_optional,
)
from codexplain.router.service_router import PrivacyViolation
from codexplain.tracking.call_logger import CallLogger

if TYPE_CHECKING:
    from codexplain.analysis.base_analyzer import BaseCodeAnalyzer
    from codexplain.cache.content_cache import ContentCache
    from codexplain.pipeline.plugin_kit.base_agent import BaseAgent
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.synthesis.base_synthesizer import BaseSynthesizer

logger = logging.getLogger(__name__)

AnalysisInput = CodeAnalysis | Awaitable[CodeAnalysis] | None


class GenerationOrchestrator:
    """Runs the explanation pipeline, at most once per fingerprint.

    Args:
        router: AI service router used by every generation stage.
        synthesizer: Media synthesis backend.
        cache: Content cache. None disables caching.
        analyzer: Analyzer used when the caller supplies no analysis.
        script_writer, flowchart_agent, example_agent: Stage agents.
        stage_timeout_s: Wall-clock budget of each AI stage.
        synthesis_timeout_s: Wall-clock budget of the synthesizing stage.
        stage_retries: Extra attempts for retryable mandatory-stage failures.
        location_tracker: Location -> code map for stale invalidation.
        calls_dir: Directory for per-run call logs (JSONL). None disables.
    """

    def __init__(
        self,
        router: AIServiceRouter,
        synthesizer: BaseSynthesizer,
        cache: ContentCache | None = None,
        analyzer: BaseCodeAnalyzer | None = None,
        script_writer: BaseAgent | None = None,
        flowchart_agent: BaseAgent | None = None,
        example_agent: BaseAgent | None = None,
        stage_timeout_s: float = 120.0,
        synthesis_timeout_s: float = 300.0,
        stage_retries: int = 1,
        location_tracker: LocationTracker | None = None,
        calls_dir: Path | None = None,
    ) -> None:
        self._router = router
        self._synthesizer = synthesizer
        self._cache = cache
        self._analyzer = analyzer
        self._script_writer = script_writer or ScriptWriterAgent()
        self._flowchart_agent = flowchart_agent or FlowchartAgent()
        self._example_agent = example_agent or ExampleAgent()
        self._stage_timeout = stage_timeout_s
        self._synthesis_timeout = synthesis_timeout_s
        self._stage_retries = stage_retries
        self._locations = location_tracker or LocationTracker()
        self._calls_dir = calls_dir
        self._flights: SingleFlight[ExplanationContent] = SingleFlight()
        self._states: dict[str, PipelineState] = {}

    @property
    def cache(self) -> ContentCache | None:
        return self._cache

    @property
    def router(self) -> AIServiceRouter:
        return self._router

    @property
    def locations(self) -> LocationTracker:
        return self._locations

    def state_for(self, fingerprint: str) -> PipelineState | None:
        """Live state of the in-flight run for a fingerprint, if any."""
        return self._states.get(fingerprint)

    def in_flight(self, fingerprint: str) -> bool:
        return self._flights.in_flight(fingerprint)

    async def orchestrate(
        self,
        request: PipelineRequest,
        analysis: AnalysisInput = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ExplanationContent:
        """Return the explanation for a request, generating it on a miss.

        Raises:
            AnalysisFailed: The code could not be analyzed.
            ServiceUnavailable, TransientServiceError, AuthError,
            InvalidRequestError, SynthesisError: The run failed.
            PipelineCancelled: The run was cancelled before completion.
        """
        fingerprint = compute_fingerprint(request)
        set_request_context(fingerprint=fingerprint, request_id=uuid.uuid4().hex[:12])

        location = location_key(request)
        stale = self._locations.observe(location, code_digest(request.code), fingerprint)
        if self._cache is not None:
            for old in stale:
                logger.info("Code at %s changed, invalidating %s", location, old[:12])
                await self._cache.invalidate(old)

        if self._cache is not None:
            entry = await self._cache.get(fingerprint)
            if entry is not None:
                _discard(analysis)
                logger.info("Served %s from cache", fingerprint[:12])
                return entry.artifact

        started = not self._flights.in_flight(fingerprint)
        if not started:
            _discard(analysis)
        try:
            return await self._flights.do(
                fingerprint,
                lambda: self._run(fingerprint, request, analysis, cancel_event),
            )
        except asyncio.CancelledError:
            if started:
                logger.info("Originating request cancelled, stopping %s", fingerprint[:12])
                self._flights.cancel(fingerprint)
            raise

    # --- Run ---

    async def _run(
        self,
        fingerprint: str,
        request: PipelineRequest,
        analysis_input: AnalysisInput,
        cancel_event: asyncio.Event | None,
    ) -> ExplanationContent:
        run_started = time.monotonic()
        call_logger = CallLogger()
        state = PipelineState(fingerprint=fingerprint)
        self._states[fingerprint] = state
        watcher = _watch_cancel(cancel_event)
        logger.info("Generation started for %s", fingerprint[:12])

        try:
            analysis: CodeAnalysis | None = None
            plan: DurationPlan | None = None
            title = ""

            while not state.is_terminal:
                stage = state.stage
                set_stage_context(stage.value)
                _raise_if_cancelled(cancel_event)

                if stage == Stage.ANALYZING:
                    outcome = await self._analyze(request, analysis_input)
                    if outcome.success:
                        analysis = outcome.data["analysis"]
                        plan = plan_duration(
                            analysis.line_count, analysis.estimated_duration_hint
                        )
                else:
                    ctx = AgentContext(
                        request=request,
                        analysis=analysis,
                        fingerprint=fingerprint,
                        target_duration_s=plan.target_s,
                        summary_mode=plan.summary_mode,
                        transcript=state.partial_results.get("transcript", ""),
                    )
                    outcome = await self._run_stage(
                        stage,
                        self._stage_call(stage, ctx, state, plan, title, call_logger),
                    )
                    if outcome.success and stage == Stage.SCRIPTING:
                        title = outcome.data.get("title", "")

                if not outcome.success and is_optional(stage):
                    logger.warning(
                        "Optional stage %s failed, omitting section: %s",
                        stage.value, outcome.error.message if outcome.error else "",
                    )
                state = advance(state, outcome, request)
                self._states[fingerprint] = state

            if state.stage == Stage.FAILED:
                error = state.error or ExplainerError("Generation failed")
                logger.warning(
                    "Generation failed for %s: %s (%s)",
                    fingerprint[:12], error.message, error.code,
                )
                raise error

            _raise_if_cancelled(cancel_event)
            artifact = self._assemble(request, state)
            if self._cache is not None:
                await self._cache.put(fingerprint, artifact, snippet_preview(request.code))

            elapsed = time.monotonic() - run_started
            summary = call_logger.summary()
            logger.info(
                "Generation done for %s in %.1fs (calls=%d, tokens=%d, partial=%s)",
                fingerprint[:12], elapsed, summary.total_calls,
                summary.total_tokens, artifact.partial,
            )
            return artifact

        except asyncio.CancelledError as e:
            raise PipelineCancelled(
                "Generation was cancelled before completion",
                details={"fingerprint": fingerprint, "stage": state.stage.value},
            ) from e
        finally:
            if watcher is not None:
                watcher.cancel()
            self._states.pop(fingerprint, None)
            set_stage_context(None)
            if self._calls_dir is not None and call_logger.total_calls:
                call_logger.save(self._calls_dir / f"{fingerprint}.jsonl")

    async def _analyze(
        self, request: PipelineRequest, analysis_input: AnalysisInput
    ) -> StageOutcome:
        """Resolve the analysis. Never retried; every failure is AnalysisFailed."""
        try:
            if isinstance(analysis_input, CodeAnalysis):
                analysis = analysis_input
            elif analysis_input is not None:
                analysis = await asyncio.wait_for(analysis_input, self._stage_timeout)
            elif self._analyzer is not None:
                analysis = await asyncio.wait_for(
                    self._analyzer.analyze(request.code, request.source_language),
                    self._stage_timeout,
                )
            else:
                raise AnalysisFailed("No code analysis supplied and no analyzer configured")
        except AnalysisFailed as e:
            return StageOutcome(stage=Stage.ANALYZING, success=False, error=e)
        except asyncio.TimeoutError as e:
            error = AnalysisFailed(f"Code analysis timed out after {self._stage_timeout:.0f}s")
            error.__cause__ = e
            return StageOutcome(stage=Stage.ANALYZING, success=False, error=error)
        except Exception as e:
            logger.exception("Code analyzer raised")
            error = AnalysisFailed(f"Code analysis failed: {e}")
            error.__cause__ = e
            return StageOutcome(stage=Stage.ANALYZING, success=False, error=error)

        if not isinstance(analysis, CodeAnalysis):
            return StageOutcome(
                stage=Stage.ANALYZING,
                success=False,
                error=AnalysisFailed(
                    f"Analyzer returned {type(analysis).__name__}, not CodeAnalysis"
                ),
            )
        return StageOutcome(stage=Stage.ANALYZING, success=True, data={"analysis": analysis})

    def _stage_call(
        self,
        stage: Stage,
        ctx: AgentContext,
        state: PipelineState,
        plan: DurationPlan,
        title: str,
        call_logger: CallLogger,
    ) -> Callable[[], Awaitable[dict[str, Any]]]:
        """Build the zero-arg coroutine factory for one attempt at a stage."""

        async def script() -> dict[str, Any]:
            output = await self._script_writer.execute(ctx, self._router, call_logger)
            _log_warnings(output.warnings)
            return {"transcript": output.data["transcript"], "title": output.data["title"]}

        async def flowchart() -> dict[str, Any]:
            output = await self._flowchart_agent.execute(ctx, self._router, call_logger)
            _log_warnings(output.warnings)
            return {"flowchart": output.data["flowchart"]}

        async def examples() -> dict[str, Any]:
            output = await self._example_agent.execute(ctx, self._router, call_logger)
            _log_warnings(output.warnings)
            return {"examples": output.data["examples"]}

        async def synthesize() -> dict[str, Any]:
            results = state.partial_results
            result = await self._synthesizer.synthesize(
                fingerprint=state.fingerprint,
                transcript=results["transcript"],
                content_type=ctx.request.content_type,
                plan=plan,
                flowchart=_flowchart(results),
                examples=_examples(results),
                title=title,
            )
            return {
                "content_url": result.content_url,
                "duration_seconds": result.duration_seconds,
            }

        calls = {
            Stage.SCRIPTING: script,
            Stage.FLOWCHARTING: flowchart,
            Stage.EXEMPLIFYING: examples,
            Stage.SYNTHESIZING: synthesize,
        }
        return calls[stage]

    async def _run_stage(
        self, stage: Stage, call: Callable[[], Awaitable[dict[str, Any]]]
    ) -> StageOutcome:
        """Run one stage under its timeout and the orchestrator retry budget."""
        timeout = (
            self._synthesis_timeout if stage == Stage.SYNTHESIZING else self._stage_timeout
        )
        attempts = 1 if is_optional(stage) else 1 + self._stage_retries

        for attempt in range(1, attempts + 1):
            try:
                data = await asyncio.wait_for(call(), timeout)
                return StageOutcome(stage=stage, success=True, data=data)
            except asyncio.TimeoutError as e:
                error: ExplainerError = TransientServiceError(
                    f"Stage {stage.value} timed out after {timeout:.0f}s",
                    details={"stage": stage.value, "kind": "timeout"},
                )
                error.__cause__ = e
            except PrivacyViolation:
                raise
            except ExplainerError as e:
                error = e
            except Exception as e:
                logger.exception("Stage %s raised unexpectedly", stage.value)
                error = ExplainerError(
                    f"Stage {stage.value} failed: {e}",
                    details={"stage": stage.value, "type": type(e).__name__},
                )

            if not error.retryable or attempt == attempts:
                return StageOutcome(stage=stage, success=False, error=error)
            logger.warning(
                "Stage %s failed (%s), retrying (%d/%d)",
                stage.value, error.code, attempt, attempts - 1,
            )

        raise AssertionError("unreachable")

    def _assemble(self, request: PipelineRequest, state: PipelineState) -> ExplanationContent:
        results = state.partial_results
        return ExplanationContent(
            content_url=results["content_url"],
            content_type=request.content_type,
            duration_seconds=results["duration_seconds"],
            transcript=results["transcript"],
            flowchart=_flowchart(results),
            examples=_examples(results),
            partial=bool(state.omitted_sections),
            omitted_sections=list(state.omitted_sections),
        )


def _flowchart(results: dict[str, Any]) -> Flowchart | None:
    raw = results.get("flowchart")
    return Flowchart(**raw) if raw is not None else None


def _examples(results: dict[str, Any]) -> list[CodeExample] | None:
    raw = results.get("examples")
    return [CodeExample(**e) for e in raw] if raw is not None else None


def _log_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        logger.warning("%s", warning)


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError()


def _watch_cancel(cancel_event: asyncio.Event | None) -> asyncio.Task[None] | None:
    """Cancel the current task as soon as ``cancel_event`` is set."""
    if cancel_event is None:
        return None
    run_task = asyncio.current_task()

    async def watch() -> None:
        await cancel_event.wait()
        if run_task is not None and not run_task.done():
            run_task.cancel()

    return asyncio.ensure_future(watch())


def _discard(analysis: AnalysisInput) -> None:
    """Close an analysis coroutine that will never be awaited."""
    if inspect.iscoroutine(analysis):
        analysis.close()
