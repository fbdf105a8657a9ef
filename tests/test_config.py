"""Tests for Settings, PipelineConfig and the mode enums."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chapterizer.api import deps
from chapterizer.api.main import app
from chapterizer.config import Settings
from chapterizer.errors import ConfigurationError, Result
from chapterizer.pipeline_config import AnalysisMode, DownloadTier, FormatMode, PipelineConfig

client = TestClient(app)


# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestAnalysisMode:
    def test_values(self) -> None:
        assert AnalysisMode.SEGMENTATION.value == "segmentation"
        assert AnalysisMode.TRANSCRIPTION.value == "transcription"

    def test_from_string(self) -> None:
        assert AnalysisMode("transcription") is AnalysisMode.TRANSCRIPTION

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            AnalysisMode("summary")

    def test_is_str_subclass(self) -> None:
        """Enum values behave as plain strings for JSON serialization."""
        assert isinstance(AnalysisMode.SEGMENTATION, str)


class TestDownloadTier:
    def test_declaration_order_is_fallback_order(self) -> None:
        assert list(DownloadTier) == [
            DownloadTier.PROGRESSIVE,
            DownloadTier.MERGED_STREAMS,
            DownloadTier.SEGMENT_STREAMING,
        ]


class TestFormatMode:
    def test_values(self) -> None:
        assert {m.value for m in FormatMode} == {"brief", "detail", "original"}


# ---------------------------------------------------------------------------
# PipelineConfig tests
# ---------------------------------------------------------------------------


class TestPipelineConfig:
    def test_defaults(self) -> None:
        cfg = PipelineConfig()
        assert cfg.mode is AnalysisMode.SEGMENTATION
        assert cfg.custom_query is None
        assert cfg.fallback_group_title == "AI Segments"
        assert cfg.fallback_segment_title == "Full Video"

    def test_immutable(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.mode = AnalysisMode.TRANSCRIPTION  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Settings tests
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.ytdlp_path == "yt-dlp"
        assert s.media_root == "public"
        assert s.ytdlp_timeout_ms == 90_000

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_MODEL", "gemini-2.0-flash")
        monkeypatch.setenv("FFMPEG_PATH", "/opt/bin/ffmpeg")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.gemini_model == "gemini-2.0-flash"
        assert s.ffmpeg_path == "/opt/bin/ffmpeg"

    def test_preferred_transcript_langs(self) -> None:
        s = Settings(_env_file=None, transcript_langs=" en, de ,,fr")  # type: ignore[call-arg]
        assert s.preferred_transcript_langs == ["en", "de", "fr"]


# ---------------------------------------------------------------------------
# API mode validation
# ---------------------------------------------------------------------------


class TestSegmentEndpointMode:
    def test_rejects_invalid_mode(self) -> None:
        response = client.post("/api/segment", json={"url": "https://youtu.be/v", "mode": "summary"})
        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_rejects_invalid_format_mode(self) -> None:
        response = client.post("/api/documents/format", json={"text": "x", "mode": "poetic"})
        assert response.status_code == 422

    def test_accepts_transcription_mode(self) -> None:
        captured: dict[str, PipelineConfig] = {}

        class _Pipeline:
            def run(self, url: str, config: PipelineConfig, **kwargs: object) -> Result[None]:
                captured["config"] = config
                return Result.failure(ConfigurationError("GEMINI_API_KEY is not configured"))

        app.dependency_overrides[deps.get_pipeline] = _Pipeline
        try:
            response = client.post(
                "/api/segment", json={"url": "https://youtu.be/v", "mode": "transcription"}
            )
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 400
        assert captured["config"].mode is AnalysisMode.TRANSCRIPTION
