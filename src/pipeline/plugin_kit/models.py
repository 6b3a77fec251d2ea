# src/pipeline/plugin_kit/models.py - v1
"""Agent plugin models: AgentContext, AgentMetadata, AgentOutput."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from codexplain.core.models import CodeAnalysis, PipelineRequest


class AgentContext(BaseModel):
    """Read-only inputs handed to a generation agent."""

    request: PipelineRequest
    analysis: CodeAnalysis
    fingerprint: str = ""
    target_duration_s: int = 180
    summary_mode: bool = False
    transcript: str = ""


class AgentMetadata(BaseModel):
    """Metadata about an agent execution, attached to every AgentOutput."""

    agent_name: str
    agent_version: str
    execution_time_ms: int
    ai_calls: int
    tokens_used: int
    backend: str | None = None
    prompt_hash: str | None = None


class AgentOutput(BaseModel):
    """Standard return type for all BaseAgent.execute() calls."""

    data: dict[str, Any]
    confidence: float
    metadata: AgentMetadata
    warnings: list[str] = Field(default_factory=list)
