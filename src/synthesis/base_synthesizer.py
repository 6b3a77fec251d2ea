# src/synthesis/base_synthesizer.py - v1
"""Abstract synthesis backend (TTS / video rendering).

Only the orchestrator's synthesizing stage calls a synthesizer. Any
rendering failure must surface as SynthesisError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from codexplain.core.models import CodeExample, ContentType, Flowchart
from codexplain.pipeline.duration import DurationPlan


class SynthesisResult(BaseModel):
    """Reference to synthesized media."""

    content_url: str
    duration_seconds: int


class BaseSynthesizer(ABC):
    """Unified interface for media synthesis backends."""

    @abstractmethod
    async def synthesize(
        self,
        fingerprint: str,
        transcript: str,
        content_type: ContentType,
        plan: DurationPlan,
        flowchart: Flowchart | None = None,
        examples: list[CodeExample] | None = None,
        title: str = "",
    ) -> SynthesisResult:
        """Render the explanation media.

        Raises:
            SynthesisError: The backend could not produce the media.
        """
