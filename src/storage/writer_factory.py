# src/storage/writer_factory.py - v1
"""Factory: instantiate output writer from configuration."""

from __future__ import annotations

from codexplain.config.settings import Settings
from codexplain.storage.base_output_writer import BaseOutputWriter
from codexplain.storage.local_writer import LocalWriter


def create_writer(settings: Settings) -> BaseOutputWriter:
    """Create the output writer for synthesized content."""
    return LocalWriter(settings.output_root, base_url=settings.content_base_url)
