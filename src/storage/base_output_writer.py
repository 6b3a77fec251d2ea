# src/storage/base_output_writer.py - v1
"""Abstract output writer interface for synthesized media files."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseOutputWriter(ABC):
    """Unified interface for output storage backends."""

    @abstractmethod
    async def write(self, path: str, content: bytes | str) -> None:
        """Write content to the given path."""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Read content from the given path."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if path exists."""

    @abstractmethod
    async def list_dir(self, path: str) -> list[str]:
        """List directory contents."""

    @abstractmethod
    def url_for(self, path: str) -> str:
        """Public URL a player can load the file from."""
