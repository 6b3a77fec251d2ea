# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types: requests, analysis output, the produced
explanation artifact and Q&A session state all come from here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === ENUMS ===


class ContentType(str, Enum):
    """Kind of media produced for an explanation."""

    VIDEO = "video"
    AUDIO = "audio"


class AIMode(str, Enum):
    """Routing policy across AI backends."""

    CLOUD = "cloud"
    LOCAL = "local"
    HYBRID = "hybrid"


class BackendKind(str, Enum):
    """Where an AI backend runs."""

    CLOUD = "cloud"
    LOCAL = "local"


class RequestKind(str, Enum):
    """Capabilities an AI backend exposes to the router."""

    ANALYZE = "analyze"
    EXPLAIN = "explain"
    FLOWCHART = "flowchart"
    EXAMPLES = "examples"
    ANSWER = "answer"


# === REQUEST ===


class PipelineRequest(BaseModel):
    """Canonical generation input.

    ``file_path`` and ``selection`` identify the logical code location in the
    editor. They are not part of the fingerprint: two requests for the same
    code at different locations produce the same artifact.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    source_language: str
    target_language: str = "en"
    content_type: ContentType = ContentType.VIDEO
    include_flowchart: bool = True
    include_examples: bool = False
    file_path: str | None = None
    selection: tuple[int, int] | None = None


# === ANALYSIS ===


class CodeAnalysis(BaseModel):
    """Structural summary of a code snippet, produced by a code analyzer."""

    language: str
    line_count: int
    function_count: int = 0
    class_count: int = 0
    control_flow_count: int = 0
    complexity: float = 1.0
    summary: str = ""
    structure: dict[str, Any] = Field(default_factory=dict)
    estimated_duration_hint: int | None = None

    @property
    def has_control_flow(self) -> bool:
        return self.control_flow_count > 0


# === FLOWCHART / EXAMPLES ===


class FlowchartNode(BaseModel):
    """Single flowchart node."""

    id: str
    label: str
    kind: Literal["start", "end", "process", "decision", "io"] = "process"


class FlowchartEdge(BaseModel):
    """Directed edge between two flowchart nodes."""

    source: str
    target: str
    label: str | None = None


class Flowchart(BaseModel):
    """Control-flow diagram of the explained code."""

    nodes: list[FlowchartNode] = Field(default_factory=list)
    edges: list[FlowchartEdge] = Field(default_factory=list)

    @property
    def is_trivial(self) -> bool:
        """True when the chart holds only start and end nodes."""
        return all(n.kind in ("start", "end") for n in self.nodes)

    @classmethod
    def start_to_end(cls) -> Flowchart:
        return cls(
            nodes=[
                FlowchartNode(id="start", label="Start", kind="start"),
                FlowchartNode(id="end", label="End", kind="end"),
            ],
            edges=[FlowchartEdge(source="start", target="end")],
        )


class CodeExample(BaseModel):
    """Equivalent code in another programming language."""

    language: str
    code: str
    explanation: str = ""


# === ARTIFACT ===


class ExplanationContent(BaseModel):
    """Produced explanation artifact. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content_url: str
    content_type: ContentType
    duration_seconds: int
    transcript: str
    flowchart: Flowchart | None = None
    examples: list[CodeExample] | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    partial: bool = False
    omitted_sections: list[str] = Field(default_factory=list)


# === Q&A ===


class QAExchange(BaseModel):
    """One question/answer turn."""

    question: str
    answer: str
    asked_at: datetime = Field(default_factory=_utcnow)


class QASession(BaseModel):
    """Conversational state attached to one explanation artifact."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content_id: str
    code: str
    history: list[QAExchange] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
