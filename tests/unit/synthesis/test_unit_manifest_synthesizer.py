# tests/unit/synthesis/test_unit_manifest_synthesizer.py - v1
"""Tests for synthesis/manifest_synthesizer.py."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from codexplain.core.errors import SynthesisError
from codexplain.core.models import CodeExample, ContentType, Flowchart
from codexplain.pipeline.duration import plan_duration
from codexplain.storage.local_writer import LocalWriter
from codexplain.synthesis.manifest_synthesizer import ManifestSynthesizer, build_segments

FP = "cd" + "1" * 62


class TestBuildSegments:
    def test_offsets_proportional_and_end_at_duration(self):
        transcript = "one two three four\n\nfive six"
        segments = build_segments(transcript, 120)
        assert [s["text"] for s in segments] == ["one two three four", "five six"]
        assert segments[0]["start"] == 0
        assert segments[0]["end"] == pytest.approx(80.0)
        assert segments[1]["start"] == pytest.approx(80.0)
        assert segments[-1]["end"] == 120.0

    def test_blank_paragraphs_skipped(self):
        assert len(build_segments("a\n\n \n\nb", 120)) == 2

    def test_empty(self):
        assert build_segments("", 120) == []


class TestManifestSynthesizer:
    @pytest.mark.asyncio
    async def test_video_manifest(self, tmp_output_dir):
        synth = ManifestSynthesizer(LocalWriter(tmp_output_dir))
        result = await synth.synthesize(
            fingerprint=FP,
            transcript="word " * 400,
            content_type=ContentType.VIDEO,
            plan=plan_duration(50),
            flowchart=Flowchart.start_to_end(),
            examples=[CodeExample(language="go", code="x := 1")],
            title="Demo",
        )
        assert result.duration_seconds == 160
        manifest_file = tmp_output_dir / "cd" / FP / "manifest.json"
        assert result.content_url == manifest_file.resolve().as_uri()
        manifest = json.loads(manifest_file.read_text())
        assert manifest["title"] == "Demo"
        assert manifest["duration_seconds"] == 160
        assert manifest["scenes"] == ["code", "flowchart", "examples"]
        assert (tmp_output_dir / "cd" / FP / "transcript.txt").read_text().startswith("word")

    @pytest.mark.asyncio
    async def test_audio_has_no_scenes(self, tmp_output_dir):
        synth = ManifestSynthesizer(LocalWriter(tmp_output_dir))
        await synth.synthesize(FP, "Short narration.", ContentType.AUDIO, plan_duration(10))
        manifest = json.loads((tmp_output_dir / "cd" / FP / "manifest.json").read_text())
        assert "scenes" not in manifest
        assert manifest["flowchart"] is None
        assert manifest["duration_seconds"] == 120

    @pytest.mark.asyncio
    async def test_empty_transcript(self, tmp_output_dir):
        synth = ManifestSynthesizer(LocalWriter(tmp_output_dir))
        with pytest.raises(SynthesisError):
            await synth.synthesize(FP, "  ", ContentType.VIDEO, plan_duration(10))

    @pytest.mark.asyncio
    async def test_write_failure(self):
        writer = AsyncMock(spec=LocalWriter)
        writer.write.side_effect = OSError("read-only file system")
        synth = ManifestSynthesizer(writer)
        with pytest.raises(SynthesisError, match="read-only") as exc:
            await synth.synthesize(FP, "Narration.", ContentType.VIDEO, plan_duration(10))
        assert exc.value.details == {"fingerprint": FP}
