# src/llm/base_client.py - v1
"""Abstract AI backend client.

Every backend exposes a single completion entry point; the request kind
(analyze, explain, flowchart, examples, answer) is carried by the prompt,
not by the client. Only the router calls these clients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from codexplain.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all AI backends."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion. ``json_mode`` asks the backend for a JSON body."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai, google, ollama)."""

    @property
    def is_local(self) -> bool:
        """True when the backend never leaves the machine."""
        return False

    @property
    def model(self) -> str:
        return getattr(self, "_model", "")
