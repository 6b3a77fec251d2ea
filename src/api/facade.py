# src/api/facade.py - v2
"""Public API facade: the entry points editor adapters call.

Usage:
    from codexplain.api.facade import build_orchestrator, explain
    orchestrator = build_orchestrator(settings)
    result = await explain(request, orchestrator=orchestrator)

Taxonomy errors never escape these functions: they come back as an
ErrorResponse payload on the result.
"""

from __future__ import annotations

import asyncio
import logging

from codexplain.analysis.heuristic_analyzer import HeuristicAnalyzer
from codexplain.api.models import AskResult, ExplainResult
from codexplain.cache.cache_factory import create_content_cache
from codexplain.cache.fingerprint import compute_fingerprint
from codexplain.config.settings import Settings
from codexplain.core.errors import ExplainerError, InvalidRequestError, error_response_from
from codexplain.core.models import PipelineRequest
from codexplain.pipeline.location_tracker import LocationTracker
from codexplain.pipeline.orchestrator import AnalysisInput, GenerationOrchestrator
from codexplain.qa.session_store import QASessionStore
from codexplain.router.service_router import AIServiceRouter
from codexplain.storage.writer_factory import create_writer
from codexplain.synthesis.manifest_synthesizer import ManifestSynthesizer

logger = logging.getLogger(__name__)


def build_orchestrator(settings: Settings | None = None) -> GenerationOrchestrator:
    """Wire router, cache, analyzer and synthesizer from settings."""
    settings = settings or Settings()
    cache = create_content_cache(settings) if settings.cache_enabled else None
    locations = None
    if cache is not None and settings.cache_backend != "memory":
        locations = LocationTracker(
            settings.cache_root.expanduser() / "index" / "locations.json"
        )
    return GenerationOrchestrator(
        router=AIServiceRouter.from_settings(settings),
        synthesizer=ManifestSynthesizer(create_writer(settings)),
        cache=cache,
        analyzer=HeuristicAnalyzer(),
        stage_timeout_s=settings.stage_timeout_seconds,
        synthesis_timeout_s=settings.synthesis_timeout_seconds,
        stage_retries=settings.orchestrator_stage_retries,
        location_tracker=locations,
        calls_dir=settings.output_root.expanduser() / "calls",
    )


def build_qa_store(
    orchestrator: GenerationOrchestrator, settings: Settings | None = None
) -> QASessionStore:
    """Q&A store sharing the orchestrator's router and cache."""
    settings = settings or Settings()
    return QASessionStore(
        router=orchestrator.router,
        cache=orchestrator.cache,
        history_window=settings.qa_history_window,
    )


async def explain(
    request: PipelineRequest,
    analysis: AnalysisInput = None,
    settings: Settings | None = None,
    orchestrator: GenerationOrchestrator | None = None,
    cancel_event: asyncio.Event | None = None,
) -> ExplainResult:
    """Explain a code selection.

    Args:
        request: Code and generation parameters.
        analysis: Precomputed analysis, an awaitable producing one, or None.
        settings: Used to build an orchestrator when none is given.
        orchestrator: Long-lived orchestrator (keeps cache and single-flight state).
        cancel_event: Set to cancel the generation this call started.
    """
    orchestrator = orchestrator or build_orchestrator(settings)
    fingerprint = compute_fingerprint(request)
    try:
        content = await orchestrator.orchestrate(request, analysis, cancel_event)
    except ExplainerError as e:
        return ExplainResult(fingerprint=fingerprint, error=e.to_response())
    except Exception as e:
        logger.exception("Unexpected failure explaining %s", fingerprint[:12])
        return ExplainResult(fingerprint=fingerprint, error=error_response_from(e))
    return ExplainResult(fingerprint=fingerprint, content=content)


async def ask(store: QASessionStore, session_id: str, question: str) -> AskResult:
    """Ask a question in a Q&A session."""
    try:
        exchange = await store.ask(session_id, question)
    except ExplainerError as e:
        return AskResult(session_id=session_id, error=e.to_response())
    except ValueError as e:
        error = InvalidRequestError(str(e), suggestions=["Type a question about the code."])
        return AskResult(session_id=session_id, error=error.to_response())
    except Exception as e:
        logger.exception("Unexpected failure answering in session %s", session_id)
        return AskResult(session_id=session_id, error=error_response_from(e))
    return AskResult(session_id=session_id, exchange=exchange)
