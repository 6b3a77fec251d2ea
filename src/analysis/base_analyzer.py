# src/analysis/base_analyzer.py - v1
"""Abstract code analyzer interface.

The orchestrator treats analysis as an opaque producer of CodeAnalysis.
Any failure must surface as AnalysisFailed, which is never retried.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from codexplain.core.models import CodeAnalysis


class BaseCodeAnalyzer(ABC):
    """Unified interface for code analyzers."""

    @abstractmethod
    async def analyze(self, code: str, language: str) -> CodeAnalysis:
        """Analyze a code snippet.

        Raises:
            AnalysisFailed: Bad syntax or unsupported language.
        """

    @property
    def supported_languages(self) -> frozenset[str]:
        return frozenset()
