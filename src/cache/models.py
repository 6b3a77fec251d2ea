# src/cache/models.py - v1
"""Cache domain models: CacheEntry and its artifact-free metadata view."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from codexplain.core.models import ExplanationContent


class CacheEntryMetadata(BaseModel):
    """Everything about a cache entry except the artifact itself."""

    fingerprint: str
    artifact_id: str
    snippet_preview: str
    created_at: datetime
    last_accessed_at: datetime
    access_count: int
    size_bytes: int


class CacheEntry(BaseModel):
    """Single cache entry linking a fingerprint to its produced artifact."""

    fingerprint: str
    artifact: ExplanationContent
    snippet_preview: str = ""
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 0
    size_bytes: int

    def metadata(self) -> CacheEntryMetadata:
        return CacheEntryMetadata(
            fingerprint=self.fingerprint,
            artifact_id=self.artifact.id,
            snippet_preview=self.snippet_preview,
            created_at=self.created_at,
            last_accessed_at=self.last_accessed_at,
            access_count=self.access_count,
            size_bytes=self.size_bytes,
        )


def artifact_size(artifact: ExplanationContent) -> int:
    """Size of an artifact as stored: UTF-8 length of its JSON form."""
    return len(artifact.model_dump_json().encode("utf-8"))
