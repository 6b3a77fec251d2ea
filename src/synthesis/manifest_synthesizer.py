# src/synthesis/manifest_synthesizer.py - v1
"""Default synthesizer: writes a timed media manifest.

The manifest lists narration segments with start/end offsets (speech
paced at 150 words per minute), plus the flowchart and examples panels.
A player or an external TTS/video renderer consumes it; codecs are not
handled here.
"""

from __future__ import annotations

import json
import logging

from codexplain.core.errors import SynthesisError
from codexplain.core.models import CodeExample, ContentType, Flowchart
from codexplain.pipeline.duration import WORDS_PER_MINUTE, DurationPlan, estimate_duration
from codexplain.storage import layout
from codexplain.storage.base_output_writer import BaseOutputWriter
from codexplain.synthesis.base_synthesizer import BaseSynthesizer, SynthesisResult

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class ManifestSynthesizer(BaseSynthesizer):
    """Writes manifest.json and transcript.txt through an output writer."""

    def __init__(self, writer: BaseOutputWriter) -> None:
        self._writer = writer

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
        if not transcript.strip():
            raise SynthesisError("Cannot synthesize an empty transcript")

        duration = estimate_duration(transcript, plan)
        manifest = {
            "version": MANIFEST_VERSION,
            "fingerprint": fingerprint,
            "title": title,
            "content_type": content_type.value,
            "duration_seconds": duration,
            "summary_mode": plan.summary_mode,
            "segments": build_segments(transcript, duration),
            "flowchart": flowchart.model_dump() if flowchart is not None else None,
            "examples": (
                [e.model_dump() for e in examples] if examples is not None else None
            ),
        }
        if content_type == ContentType.VIDEO:
            manifest["scenes"] = _scenes(flowchart, examples)

        manifest_path = layout.manifest_path(fingerprint)
        try:
            await self._writer.write(layout.transcript_path(fingerprint), transcript)
            await self._writer.write(manifest_path, json.dumps(manifest, indent=2))
        except OSError as e:
            raise SynthesisError(
                f"Failed to write media manifest: {e}",
                details={"fingerprint": fingerprint},
            ) from e

        url = self._writer.url_for(manifest_path)
        logger.info(
            "Synthesized %s (%ds) -> %s", content_type.value, duration, url
        )
        return SynthesisResult(content_url=url, duration_seconds=duration)


def build_segments(transcript: str, duration_s: int) -> list[dict[str, object]]:
    """Split narration into paragraphs with start/end offsets.

    Offsets are proportional to word counts and scaled so the last
    segment ends exactly at ``duration_s``.
    """
    paragraphs = [p.strip() for p in transcript.split("\n\n") if p.strip()]
    words = [len(p.split()) for p in paragraphs]
    total_words = sum(words) or 1
    spoken_s = total_words * 60 / WORDS_PER_MINUTE
    scale = duration_s / spoken_s if spoken_s else 0.0

    segments: list[dict[str, object]] = []
    elapsed = 0.0
    for text, count in zip(paragraphs, words):
        length = count * 60 / WORDS_PER_MINUTE * scale
        segments.append(
            {
                "start": round(elapsed, 2),
                "end": round(min(elapsed + length, duration_s), 2),
                "text": text,
            }
        )
        elapsed += length
    if segments:
        segments[-1]["end"] = float(duration_s)
    return segments


def _scenes(
    flowchart: Flowchart | None, examples: list[CodeExample] | None
) -> list[str]:
    scenes = ["code"]
    if flowchart is not None:
        scenes.append("flowchart")
    if examples:
        scenes.append("examples")
    return scenes
