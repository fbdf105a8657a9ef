"""Pipeline configuration: mode enums and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AnalysisMode(str, Enum):
    """What the topic-analysis model is asked to do with the audio."""

    SEGMENTATION = "segmentation"
    TRANSCRIPTION = "transcription"


class DownloadTier(str, Enum):
    """Download strategies, tried in declaration order."""

    PROGRESSIVE = "progressive"
    MERGED_STREAMS = "merged_streams"
    SEGMENT_STREAMING = "segment_streaming"


class FormatMode(str, Enum):
    """Rewrite modes for the batch page formatter."""

    BRIEF = "brief"
    DETAIL = "detail"
    ORIGINAL = "original"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable per-invocation configuration for the segmentation pipeline.

    Defaults mirror the behaviour of the course-creation path: segmentation
    mode and the "AI Segments" parent chapter title.
    """

    mode: AnalysisMode = AnalysisMode.SEGMENTATION
    custom_query: str | None = None
    fallback_group_title: str = "AI Segments"
    fallback_segment_title: str = "Full Video"
