# src/storage/local_writer.py - v1
"""Local filesystem output writer (default backend)."""

from __future__ import annotations

import os
from pathlib import Path

from codexplain.storage.base_output_writer import BaseOutputWriter


class LocalWriter(BaseOutputWriter):
    """Write outputs to the local filesystem.

    Args:
        base_path: Root directory for all writes.
        base_url: Public URL prefix for served files. Empty means file:// URLs.
    """

    def __init__(self, base_path: str | Path, base_url: str = "") -> None:
        self._base = Path(base_path).expanduser()
        self._base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        """Resolve a path relative to base_path."""
        return self._base / path

    async def write(self, path: str, content: bytes | str) -> None:
        """Write content atomically (temp file + rename)."""
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_name(p.name + ".tmp")
        if isinstance(content, bytes):
            tmp.write_bytes(content)
        else:
            tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, p)

    async def read(self, path: str) -> bytes:
        """Read content from a local file path."""
        return self._resolve(path).read_bytes()

    async def exists(self, path: str) -> bool:
        """Check if a local path exists."""
        return self._resolve(path).exists()

    async def list_dir(self, path: str) -> list[str]:
        """List directory contents."""
        p = self._resolve(path)
        if not p.is_dir():
            return []
        return [entry.name for entry in sorted(p.iterdir())]

    def url_for(self, path: str) -> str:
        if self._base_url:
            return f"{self._base_url}/{path}"
        return self._resolve(path).resolve().as_uri()
