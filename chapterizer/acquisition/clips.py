"""Clip generation: trim a time range out of a source and grab a thumbnail."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from pathlib import Path

from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.config import Settings

logger = logging.getLogger(__name__)

ZERO_DURATION = "duration is zero"


@dataclass
class ClipResult:
    ok: bool
    clip_path: Path | None = None
    thumbnail_path: Path | None = None
    download_url: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: int | None = None
    error: str | None = None


class ClipGenerator:
    """Cut segment clips with FFmpeg.

    Zero-duration segments are emitted by the chapter builder and rejected here.
    """

    def __init__(self, runner: ProcessRunner, settings: Settings) -> None:
        self.runner = runner
        self.settings = settings
        self.media_root = Path(settings.media_root)

    def short_paths(self, short_id: str) -> tuple[Path, Path, str, str]:
        """Return ``(clip_abs, thumb_abs, clip_url, thumb_url)`` for a short."""
        base = self.media_root / "downloads" / "shorts" / short_id
        return (
            base / "clip.mp4",
            base / "thumb.jpg",
            f"/downloads/shorts/{short_id}/clip.mp4",
            f"/downloads/shorts/{short_id}/thumb.jpg",
        )

    def clip_segment(
        self,
        source_path: Path,
        start_seconds: float,
        end_seconds: float,
        out_path: Path,
        thumbnail_path: Path | None = None,
        cancel: threading.Event | None = None,
    ) -> ClipResult:
        start = max(0, math.floor(start_seconds))
        end = max(0, math.floor(end_seconds))
        duration = max(0, end - start)
        if not duration:
            return ClipResult(ok=False, error=ZERO_DURATION)

        out_path.parent.mkdir(parents=True, exist_ok=True)
        args = [
            "-y",
            "-ss", str(start),
            "-t", str(duration),
            "-i", str(source_path),
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-c:a", "aac",
            "-movflags", "+faststart",
            "-map_metadata", "-1",
            str(out_path),
        ]
        res = self.runner.run(
            self.settings.ffmpeg_path,
            args,
            timeout_ms=self.settings.ffmpeg_timeout_ms,
            cancel=cancel,
        )
        if not res.ok:
            logger.error("FFmpeg clip failed for %s [%s-%s]: %s", source_path, start, end, res.stderr)
            return ClipResult(ok=False, error=res.stderr or "ffmpeg failed")

        thumb_ok = False
        if thumbnail_path is not None:
            thumbnail_path.parent.mkdir(parents=True, exist_ok=True)
            thumb_args = [
                "-y",
                "-ss", str(start + duration // 3),
                "-i", str(source_path),
                "-frames:v", "1",
                str(thumbnail_path),
            ]
            thumb_res = self.runner.run(
                self.settings.ffmpeg_path,
                thumb_args,
                timeout_ms=self.settings.ffmpeg_timeout_ms,
                cancel=cancel,
            )
            thumb_ok = thumb_res.ok
            if not thumb_ok:
                logger.warning("Thumbnail extraction failed for %s: %s", source_path, thumb_res.stderr)

        return ClipResult(
            ok=True,
            clip_path=out_path,
            thumbnail_path=thumbnail_path if thumb_ok else None,
            duration_seconds=duration,
        )

    def generate_short(
        self,
        short_id: str,
        source_path: Path,
        start_seconds: float,
        end_seconds: float,
        cancel: threading.Event | None = None,
    ) -> ClipResult:
        """Clip a segment into the public shorts directory for *short_id*."""
        clip_abs, thumb_abs, clip_url, thumb_url = self.short_paths(short_id)
        result = self.clip_segment(
            source_path, start_seconds, end_seconds, clip_abs, thumb_abs, cancel=cancel
        )
        if result.ok:
            result.download_url = clip_url
            result.thumbnail_url = thumb_url if result.thumbnail_path else None
        return result
