"""Audio extraction and duration probing with FFmpeg."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from chapterizer.acquisition.models import AudioTrack
from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.config import Settings
from chapterizer.errors import CancelledError, Result, TranscodeError

logger = logging.getLogger(__name__)

AUDIO_SUFFIX = ".flac"
SAMPLE_RATE = 16000  # expected by the analysis model


def audio_path_for(media_path: Path) -> Path:
    """Same directory and basename as *media_path*, FLAC extension."""
    return media_path.with_suffix(AUDIO_SUFFIX)


class AudioExtractor:
    """Produce a 16 kHz mono FLAC track from an acquired media file."""

    def __init__(self, runner: ProcessRunner, settings: Settings) -> None:
        self.runner = runner
        self.settings = settings

    def extract_audio(
        self,
        media_path: Path,
        cancel: threading.Event | None = None,
    ) -> Result[AudioTrack]:
        media_path = Path(media_path)
        audio_path = audio_path_for(media_path)
        if audio_path == media_path:
            # Input is already FLAC; write beside it instead of over it
            audio_path = media_path.with_name(f"{media_path.stem}.16k{AUDIO_SUFFIX}")

        args = [
            "-i", str(media_path),
            "-y",
            "-vn",  # No video
            "-acodec", "flac",
            "-ar", str(SAMPLE_RATE),
            "-ac", "1",  # Mono
            str(audio_path),
        ]
        res = self.runner.run(
            self.settings.ffmpeg_path,
            args,
            timeout_ms=self.settings.ffmpeg_timeout_ms,
            cancel=cancel,
        )
        if cancel is not None and cancel.is_set():
            return Result.failure(CancelledError("Audio extraction cancelled"))
        if not res.ok:
            logger.error("FFmpeg audio extraction failed for %s: %s", media_path, res.stderr)
            return Result.failure(TranscodeError("failed to extract audio"))

        logger.info("Audio extracted to %s", audio_path)
        return Result.success(AudioTrack(local_path=audio_path))

    def probe_duration(
        self,
        media_path: Path,
        cancel: threading.Event | None = None,
    ) -> int | None:
        """Return the media duration in whole seconds, or ``None`` if unknown."""
        args = [
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(media_path),
        ]
        res = self.runner.run(
            self.settings.ffprobe_path,
            args,
            timeout_ms=self.settings.metadata_timeout_ms,
            cancel=cancel,
        )
        if not res.ok:
            return None
        try:
            return round(float(res.stdout.strip()))
        except ValueError:
            return None
