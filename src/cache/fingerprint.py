# src/cache/fingerprint.py - v2
"""Content-addressing key for explanation requests.

The fingerprint is a SHA-256 digest over the canonical request fields.
It is pure: no clock, no randomness, no environment. Code text is hashed
verbatim apart from line-ending normalisation: CRLF and LF give the
same key, every other whitespace change gives a new one.
"""

from __future__ import annotations

import hashlib

from codexplain.core.models import PipelineRequest

# Bump when the canonical form changes so old entries are never reused.
FINGERPRINT_VERSION = "1"


def compute_fingerprint(request: PipelineRequest) -> str:
    """Compute the content-addressing key for a request.

    Returns:
        64-character lowercase hex digest.
    """
    fields = [
        FINGERPRINT_VERSION,
        normalize_code(request.code),
        request.source_language.strip().lower(),
        request.target_language.strip().lower(),
        request.content_type.value,
        "flowchart=1" if request.include_flowchart else "flowchart=0",
        "examples=1" if request.include_examples else "examples=0",
    ]
    digest = hashlib.sha256()
    for value in fields:
        data = value.encode("utf-8")
        # Length prefix keeps field boundaries unambiguous.
        digest.update(f"{len(data)}:".encode("ascii"))
        digest.update(data)
    return digest.hexdigest()


def normalize_code(code: str) -> str:
    """Normalise line endings to LF."""
    return code.replace("\r\n", "\n").replace("\r", "\n")


def snippet_preview(code: str, max_chars: int = 120) -> str:
    """First non-blank lines of the code, collapsed to a short preview."""
    lines = [line.strip() for line in normalize_code(code).split("\n") if line.strip()]
    preview = " ".join(lines)
    if len(preview) > max_chars:
        return preview[: max_chars - 3] + "..."
    return preview


def location_key(request: PipelineRequest) -> str | None:
    """Logical editor location of the request, or None when unknown."""
    if not request.file_path:
        return None
    if request.selection is None:
        return request.file_path
    start, end = request.selection
    return f"{request.file_path}:{start}-{end}"


def code_digest(code: str) -> str:
    """SHA-256 of the line-ending-normalised code alone."""
    return hashlib.sha256(normalize_code(code).encode("utf-8")).hexdigest()
