# src/storage/layout.py - v1
"""Output directory structure for synthesized content.

  {output_root}/{fingerprint[:2]}/{fingerprint}/
      manifest.json     media manifest the player loads
      transcript.txt    narration text
"""

from __future__ import annotations

MANIFEST_FILE = "manifest.json"
TRANSCRIPT_FILE = "transcript.txt"


def content_dir(fingerprint: str) -> str:
    """Relative directory for one artifact, sharded by fingerprint prefix."""
    return f"{fingerprint[:2]}/{fingerprint}"


def manifest_path(fingerprint: str) -> str:
    return f"{content_dir(fingerprint)}/{MANIFEST_FILE}"


def transcript_path(fingerprint: str) -> str:
    return f"{content_dir(fingerprint)}/{TRANSCRIPT_FILE}"
