# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides scripted fake AI backends, router and orchestrator builders,
sample requests, analyses and artifacts. No network: every backend is
a FakeLLMClient.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from codexplain.analysis.heuristic_analyzer import HeuristicAnalyzer
from codexplain.cache.content_cache import ContentCache
from codexplain.cache.memory_store import MemoryCacheStore
from codexplain.core.models import (
    AIMode,
    BackendKind,
    CodeAnalysis,
    ContentType,
    ExplanationContent,
    Flowchart,
    PipelineRequest,
)
from codexplain.llm.base_client import BaseLLMClient
from codexplain.llm.models import LLMResponse, Message
from codexplain.llm.retry import RetryPolicy
from codexplain.pipeline import prompts
from codexplain.pipeline.orchestrator import GenerationOrchestrator
from codexplain.router.health import HealthTracker
from codexplain.router.models import BackendHandle
from codexplain.router.service_router import AIServiceRouter
from codexplain.storage.local_writer import LocalWriter
from codexplain.synthesis.manifest_synthesizer import ManifestSynthesizer

# === SAMPLE CODE ===

# 50 lines, no control flow.
STRAIGHT_CODE = "\n".join(f"value_{i} = {i} * 2" for i in range(50)) + "\n"

BRANCHY_CODE = '''def classify(n):
    if n < 0:
        return "negative"
    for i in range(n):
        print(i)
    return "done"
'''

SCRIPT_RESPONSE = json.dumps({
    "title": "Doubling values",
    "sections": [
        {
            "heading": "Purpose",
            "narration": "This code assigns fifty variables, each holding "
                         "twice its own index.",
        },
        {
            "heading": "Details",
            "narration": "Every line is independent, so the order of the "
                         "assignments does not matter.",
        },
    ],
})

FLOWCHART_RESPONSE = json.dumps({
    "nodes": [
        {"id": "start", "label": "Start", "kind": "start"},
        {"id": "neg", "label": "n < 0?", "kind": "decision"},
        {"id": "ret_neg", "label": "return negative", "kind": "process"},
        {"id": "loop", "label": "print each i", "kind": "process"},
        {"id": "end", "label": "End", "kind": "end"},
    ],
    "edges": [
        {"source": "start", "target": "neg"},
        {"source": "neg", "target": "ret_neg", "label": "yes"},
        {"source": "neg", "target": "loop", "label": "no"},
        {"source": "ret_neg", "target": "end"},
        {"source": "loop", "target": "end"},
    ],
})

EXAMPLES_RESPONSE = json.dumps({
    "examples": [
        {"language": "javascript", "code": "const v = i * 2;", "explanation": "Same idea."},
        {"language": "go", "code": "v := i * 2", "explanation": "Short declaration."},
    ],
})

QA_ANSWER = "It doubles each index."


def pipeline_responder(messages: list[Message], system: str | None) -> str:
    """Answer each agent with a well-formed response, keyed on its system prompt."""
    if system == prompts.SCRIPT_SYSTEM:
        return SCRIPT_RESPONSE
    if system == prompts.FLOWCHART_SYSTEM:
        return FLOWCHART_RESPONSE
    if system == prompts.EXAMPLES_SYSTEM:
        return EXAMPLES_RESPONSE
    if system == prompts.QA_SYSTEM:
        return QA_ANSWER
    return "{}"


# === FAKE BACKEND ===


class FakeLLMClient(BaseLLMClient):
    """Scripted AI backend.

    Args:
        name: Provider name reported in responses.
        local: Whether the backend runs on the machine.
        script: Responses consumed in order; an exception item is raised.
        handler: Fallback producing a response once the script is exhausted.
        delay: Seconds to sleep before answering.
    """

    def __init__(
        self,
        name: str = "fake-cloud",
        local: bool = False,
        script: list[str | BaseException] | None = None,
        handler: Callable[[list[Message], str | None], str | BaseException] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._name = name
        self._local = local
        self._script = list(script or [])
        self._handler = handler or pipeline_responder
        self._delay = delay
        self._model = f"{name}-model"
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append(
            {"messages": messages, "system": system, "json_mode": json_mode}
        )
        if self._delay:
            await asyncio.sleep(self._delay)
        item = self._script.pop(0) if self._script else self._handler(messages, system)
        if isinstance(item, BaseException):
            raise item
        return LLMResponse(
            content=item,
            input_tokens=10,
            output_tokens=20,
            model=self._model,
            provider=self._name,
            latency_ms=1,
        )

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def is_local(self) -> bool:
        return self._local

    @property
    def call_count(self) -> int:
        return len(self.calls)


# === FIXTURES: Backends and router ===


@pytest.fixture
def fake_llm() -> type[FakeLLMClient]:
    """The FakeLLMClient class, for tests that script their own backends."""
    return FakeLLMClient


@pytest.fixture
def cloud_client() -> FakeLLMClient:
    return FakeLLMClient(name="anthropic")


@pytest.fixture
def local_client() -> FakeLLMClient:
    return FakeLLMClient(name="ollama", local=True)


@pytest.fixture
def make_router() -> Callable[..., AIServiceRouter]:
    """Factory building a router over fake backends with zero backoff."""

    def _make(
        cloud: list[BaseLLMClient] | BaseLLMClient | None = None,
        local: BaseLLMClient | None = None,
        mode: AIMode = AIMode.HYBRID,
        privacy_mode: bool = False,
        max_attempts: int = 1,
        health: HealthTracker | None = None,
    ) -> AIServiceRouter:
        if cloud is None:
            clouds: list[BaseLLMClient] = []
        elif isinstance(cloud, list):
            clouds = cloud
        else:
            clouds = [cloud]
        backends = [
            BackendHandle(name=c.provider_name, kind=BackendKind.CLOUD, client=c)
            for c in clouds
        ]
        if local is not None:
            backends.append(
                BackendHandle(name=local.provider_name, kind=BackendKind.LOCAL, client=local)
            )
        return AIServiceRouter(
            backends=backends,
            mode=mode,
            privacy_mode=privacy_mode,
            health=health,
            retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay_s=0.0, jitter=False),
        )

    return _make


# === FIXTURES: Sample data ===


@pytest.fixture
def straight_request() -> PipelineRequest:
    """50-line snippet without control flow."""
    return PipelineRequest(
        code=STRAIGHT_CODE,
        source_language="python",
        target_language="en",
        content_type=ContentType.VIDEO,
        include_flowchart=True,
        include_examples=False,
    )


@pytest.fixture
def branchy_request() -> PipelineRequest:
    """Short snippet with branches and a loop, flowchart and examples on."""
    return PipelineRequest(
        code=BRANCHY_CODE,
        source_language="python",
        include_flowchart=True,
        include_examples=True,
    )


@pytest.fixture
def straight_analysis() -> CodeAnalysis:
    return CodeAnalysis(
        language="python",
        line_count=50,
        summary="50 lines, 0 functions, 0 classes, 0 branches",
    )


@pytest.fixture
def branchy_analysis() -> CodeAnalysis:
    return CodeAnalysis(
        language="python",
        line_count=6,
        function_count=1,
        control_flow_count=2,
        complexity=3.0,
        summary="6 lines, 1 functions, 0 classes, 2 branches",
    )


@pytest.fixture
def sample_content() -> ExplanationContent:
    """Minimal valid artifact."""
    return ExplanationContent(
        content_url="file:///tmp/ab/abcdef/manifest.json",
        content_type=ContentType.VIDEO,
        duration_seconds=150,
        transcript="This code assigns fifty variables.",
        flowchart=Flowchart.start_to_end(),
    )


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Temporary output directory."""
    out = tmp_path / "output"
    out.mkdir()
    return out


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache


# === FIXTURES: Cache and orchestrator ===


@pytest.fixture
def memory_cache() -> ContentCache:
    """Content cache over an in-memory store with a roomy budget."""
    return ContentCache(MemoryCacheStore(), max_bytes=10_000_000)


@pytest.fixture
def make_orchestrator(tmp_output_dir: Path) -> Callable[..., GenerationOrchestrator]:
    """Factory building an orchestrator that writes manifests under tmp_output_dir."""

    def _make(
        router: AIServiceRouter,
        cache: ContentCache | None = None,
        **kwargs: Any,
    ) -> GenerationOrchestrator:
        kwargs.setdefault("analyzer", HeuristicAnalyzer())
        return GenerationOrchestrator(
            router=router,
            synthesizer=ManifestSynthesizer(LocalWriter(tmp_output_dir)),
            cache=cache,
            **kwargs,
        )

    return _make
