"""End-to-end segmentation pipeline: acquire -> extract audio -> analyze -> parse -> build."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from chapterizer.acquisition.audio import AudioExtractor
from chapterizer.acquisition.downloader import MediaAcquirer
from chapterizer.acquisition.models import AcquiredMedia, AudioTrack, RemoteUrl, SourceReference
from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.analysis.gemini import TopicAnalysisClient
from chapterizer.config import Settings
from chapterizer.errors import CancelledError, Result
from chapterizer.pipeline_config import AnalysisMode, PipelineConfig
from chapterizer.segmentation.builder import ChapterBuilder
from chapterizer.segmentation.models import Chapter, Segment
from chapterizer.segmentation.parser import TimestampParser

logger = logging.getLogger(__name__)


@dataclass
class PipelineOutput:
    """Everything one invocation produced.

    ``chapters`` is empty in transcription mode and for custom questions;
    the model's answer is in ``raw_text``.
    """

    raw_text: str
    mode: AnalysisMode
    media: AcquiredMedia | None = None
    audio: AudioTrack | None = None
    total_duration_seconds: int | None = None
    chapters: list[Chapter] = field(default_factory=list)

    @property
    def segments(self) -> list[Segment]:
        return [seg for chapter in self.chapters for seg in chapter.segments]


class SegmentationPipeline:
    """Run the stages in order; the first failed stage ends the invocation."""

    def __init__(
        self,
        acquirer: MediaAcquirer,
        extractor: AudioExtractor,
        analyzer: TopicAnalysisClient,
        parser: TimestampParser | None = None,
    ) -> None:
        self.acquirer = acquirer
        self.extractor = extractor
        self.analyzer = analyzer
        self.parser = parser or TimestampParser()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        runner: ProcessRunner | None = None,
        acquirer: MediaAcquirer | None = None,
    ) -> SegmentationPipeline:
        runner = runner or ProcessRunner()
        return cls(
            acquirer=acquirer or MediaAcquirer(runner, settings),
            extractor=AudioExtractor(runner, settings),
            analyzer=TopicAnalysisClient(settings),
        )

    def run(
        self,
        source: SourceReference | str,
        config: PipelineConfig | None = None,
        total_duration_seconds: int | None = None,
        cancel: threading.Event | None = None,
    ) -> Result[PipelineOutput]:
        """Process one source.

        Args:
            source: A URL string, :class:`RemoteUrl` or :class:`LocalFile`.
            config: Mode, custom question and fallback titles.
            total_duration_seconds: Known duration; otherwise taken from the
                download metadata or probed with ffprobe.
            cancel: Token checked between stages and passed into each one.

        Returns:
            ``Result`` with :class:`PipelineOutput` or the first stage error.
        """
        config = config or PipelineConfig()
        if isinstance(source, str):
            source = RemoteUrl(source)

        if _cancelled(cancel):
            return Result.failure(CancelledError("Pipeline cancelled before start"))

        # 1. Acquire
        acquired = self.acquirer.acquire_source(source, cancel=cancel)
        if not acquired.ok:
            logger.error("Acquisition failed: %s", acquired.error)
            return Result.failure(acquired.error)  # type: ignore[arg-type]
        media = acquired.unwrap()
        if _cancelled(cancel):
            return Result.failure(CancelledError("Pipeline cancelled after acquisition"))

        # 2. Extract audio
        extracted = self.extractor.extract_audio(media.local_path, cancel=cancel)
        if not extracted.ok:
            return Result.failure(extracted.error)  # type: ignore[arg-type]
        audio = extracted.unwrap()

        total = (
            total_duration_seconds
            or media.metadata.duration_seconds
            or self.extractor.probe_duration(media.local_path, cancel=cancel)
        )
        if _cancelled(cancel):
            return Result.failure(CancelledError("Pipeline cancelled after audio extraction"))

        # 3. Analyze
        analyzed = self.analyzer.analyze(
            audio,
            mode=config.mode,
            custom_query=config.custom_query,
            duration_seconds=total,
            cancel=cancel,
        )
        if not analyzed.ok:
            return Result.failure(analyzed.error)  # type: ignore[arg-type]
        analysis = analyzed.unwrap()

        output = PipelineOutput(
            raw_text=analysis.text,
            mode=config.mode,
            media=media,
            audio=audio,
            total_duration_seconds=total,
        )
        if config.mode is AnalysisMode.TRANSCRIPTION or config.custom_query:
            return Result.success(output)

        # 4-5. Parse and build
        output.chapters = self.segment_text(analysis.text, total, config)
        logger.info(
            "Built %d segments in %d chapters for %s",
            len(output.segments), len(output.chapters), media.public_url,
        )
        return Result.success(output)

    def segment_text(
        self,
        text: str,
        total_duration_seconds: int | None = None,
        config: PipelineConfig | None = None,
    ) -> list[Chapter]:
        """Parse a timestamped summary and build chapters from it.

        Zero parsed entries is not an error: the builder falls back to one
        segment covering the whole source.
        """
        config = config or PipelineConfig()
        parsed = self.parser.parse(text)
        if parsed.is_empty:
            logger.warning("No timestamped entries found; using a single full-length segment")
        builder = ChapterBuilder(config.fallback_group_title, config.fallback_segment_title)
        return builder.build_chapters(parsed.groups, total_duration_seconds)


def _cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()
