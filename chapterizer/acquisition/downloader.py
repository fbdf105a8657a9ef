"""Resolve a source reference to a local media file via yt-dlp.

Remote URLs are downloaded with escalating fallback tiers; every tier shares
the same hardening flags and timeout. Files are cached by source id, so a
second request for the same id never re-invokes the downloader.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from chapterizer.acquisition.models import (
    AcquiredMedia,
    LocalFile,
    MediaMetadata,
    PlaylistDownload,
    PlaylistEntry,
    PlaylistInfo,
    RemoteUrl,
    SourceReference,
    YtDlpInfo,
)
from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.config import Settings
from chapterizer.errors import AcquisitionError, CancelledError, Result
from chapterizer.pipeline_config import DownloadTier

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

# Format selector and connection count per tier
TIER_FORMATS: dict[DownloadTier, tuple[str, list[str]]] = {
    DownloadTier.PROGRESSIVE: (
        "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best",
        ["-N", "4"],
    ),
    DownloadTier.MERGED_STREAMS: ("bv*+ba/best", ["-N", "4"]),
    # Single connection for hosts that reject concurrent range requests
    DownloadTier.SEGMENT_STREAMING: (
        "b[protocol^=m3u8]/bv*[protocol^=m3u8]+ba/best",
        ["-N", "1", "--hls-prefer-ffmpeg"],
    ),
}

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]")

# Output path -> [lock, holders]; entries are dropped once nobody holds them
_DOWNLOAD_LOCKS: dict[str, list] = {}
_DOWNLOAD_LOCKS_GUARD = threading.Lock()


@contextmanager
def download_lock(out_file: Path) -> Iterator[None]:
    """Serialize work on *out_file* across every acquirer in the process."""
    key = str(out_file.resolve())
    with _DOWNLOAD_LOCKS_GUARD:
        entry = _DOWNLOAD_LOCKS.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _DOWNLOAD_LOCKS_GUARD:
            entry[1] -= 1
            if entry[1] == 0:
                del _DOWNLOAD_LOCKS[key]


@dataclass
class SavedUpload:
    """An uploaded file persisted under the media root."""

    abs_path: Path
    rel_path: str
    file_name: str


def save_upload(
    media_root: Path,
    content: bytes,
    filename: str,
    owner_id: str,
    kind: str = "videos",
) -> SavedUpload:
    """Write uploaded bytes to ``uploads/<kind>/<owner_id>/<uuid>.<ext>``."""
    default_ext = "mp3" if kind == "audio" else "mp4"
    suffix = Path(filename.replace("\\", "/")).suffix.lstrip(".")
    ext = _SAFE_ID_RE.sub("", suffix).replace(".", "").lower()[:10] or default_ext
    file_name = f"{uuid.uuid4()}.{ext}"
    upload_dir = media_root / "uploads" / kind / owner_id
    upload_dir.mkdir(parents=True, exist_ok=True)
    abs_path = upload_dir / file_name
    abs_path.write_bytes(content)
    return SavedUpload(
        abs_path=abs_path,
        rel_path=f"/uploads/{kind}/{owner_id}/{file_name}",
        file_name=file_name,
    )


def is_playlist_url(url: str) -> bool:
    return re.search(r"[?&]list=", url) is not None


class MediaAcquirer:
    """Download or locate source media.

    Downloads of the same source id are serialized process-wide, so a
    second caller waits and then reuses the first caller's file.
    """

    def __init__(self, runner: ProcessRunner, settings: Settings) -> None:
        self.runner = runner
        self.settings = settings
        self.media_root = Path(settings.media_root)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def output_path(self, source_id: str) -> Path:
        return self.media_root / "downloads" / "videos" / source_id / f"{source_id}.mp4"

    @staticmethod
    def public_url(source_id: str) -> str:
        return f"/downloads/videos/{source_id}/{source_id}.mp4"

    # ------------------------------------------------------------------
    # yt-dlp arguments
    # ------------------------------------------------------------------

    def common_args(self) -> list[str]:
        """Hardening flags shared by every download tier."""
        args = [
            "--ignore-config",
            "--no-playlist",
            "-R", "3",
            "--fragment-retries", "10",
            "--force-ipv4",
            "--geo-bypass",
            "--add-header", f"User-Agent: {USER_AGENT}",
            "--add-header", "Referer: https://www.youtube.com/",
            "--add-header", "Accept-Language: en-US,en;q=0.9",
        ]
        cookies_file = self.settings.ytdlp_cookies_file
        if cookies_file and Path(cookies_file).exists():
            args += ["--cookies", cookies_file]
        elif self.settings.ytdlp_cookies_from_browser:
            args += ["--cookies-from-browser", self.settings.ytdlp_cookies_from_browser]
        if self.settings.ytdlp_youtube_client:
            args += [
                "--extractor-args",
                f"youtube:player_client={self.settings.ytdlp_youtube_client}",
            ]
        return args

    def tier_args(self, tier: DownloadTier, out_file: Path, url: str) -> list[str]:
        fmt, extra = TIER_FORMATS[tier]
        args = [
            *self.common_args(),
            *extra,
            "-f", fmt,
            "--merge-output-format", "mp4",
            "--force-overwrites",
        ]
        # A bare "ffmpeg" is resolved from PATH by yt-dlp itself
        if self.settings.ffmpeg_path and self.settings.ffmpeg_path != "ffmpeg":
            args += ["--ffmpeg-location", self.settings.ffmpeg_path]
        return [*args, "-o", str(out_file), url]

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def fetch_metadata(
        self,
        url: str,
        cancel: threading.Event | None = None,
        allow_playlist: bool = False,
    ) -> YtDlpInfo | None:
        """Fetch ``yt-dlp -J`` metadata without downloading.

        Returns ``None`` on any failure; metadata is never fatal.
        """
        args = ["--ignore-config", "-J", url]
        if not allow_playlist:
            args.insert(1, "--no-playlist")
        res = self.runner.run(
            self.settings.ytdlp_path,
            args,
            timeout_ms=self.settings.metadata_timeout_ms,
            cancel=cancel,
        )
        if not res.ok:
            logger.warning("yt-dlp metadata fetch failed for %s: %s", url, res.stderr.strip())
            return None
        try:
            return YtDlpInfo.model_validate(json.loads(res.stdout))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("yt-dlp metadata was not valid JSON for %s: %s", url, exc)
            return None

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def acquire_source(
        self,
        source: SourceReference,
        cancel: threading.Event | None = None,
    ) -> Result[AcquiredMedia]:
        """Dispatch on the source kind."""
        if isinstance(source, RemoteUrl):
            return self.acquire(source.url, cancel=cancel)
        return self.acquire_local(source)

    def acquire_local(self, source: LocalFile) -> Result[AcquiredMedia]:
        path = Path(source.path)
        if not path.is_file():
            return Result.failure(AcquisitionError(f"Video file not found at path: {path}"))
        try:
            rel = path.resolve().relative_to(self.media_root.resolve())
            public_url = "/" + rel.as_posix()
        except ValueError:
            public_url = path.as_posix()
        return Result.success(
            AcquiredMedia(
                local_path=path,
                public_url=public_url,
                metadata=MediaMetadata(title=path.stem),
            )
        )

    def acquire(self, url: str, cancel: threading.Event | None = None) -> Result[AcquiredMedia]:
        """Download *url* (or reuse a cached download) and return its local path.

        Args:
            url: Remote media URL.
            cancel: Optional cancellation token checked between tiers.

        Returns:
            ``Result`` with :class:`AcquiredMedia`, or an
            :class:`AcquisitionError` carrying the stderr of every tier.
        """
        info = self.fetch_metadata(url, cancel=cancel)
        if info is not None and info.id:
            source_id = _SAFE_ID_RE.sub("_", info.id)
        else:
            # Suffix keeps concurrent fallbacks within the same millisecond apart
            source_id = f"src_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        metadata = MediaMetadata.from_info(info)
        out_file = self.output_path(source_id)

        with download_lock(out_file):
            if out_file.exists():
                logger.info("Reusing cached download for %s at %s", source_id, out_file)
                return Result.success(
                    AcquiredMedia(
                        local_path=out_file,
                        public_url=self.public_url(source_id),
                        metadata=metadata,
                    )
                )

            out_file.parent.mkdir(parents=True, exist_ok=True)
            failures: list[str] = []
            for tier in DownloadTier:
                if cancel is not None and cancel.is_set():
                    return Result.failure(CancelledError(f"Download of {url} cancelled"))
                res = self.runner.run(
                    self.settings.ytdlp_path,
                    self.tier_args(tier, out_file, url),
                    timeout_ms=self.settings.ytdlp_timeout_ms,
                    cancel=cancel,
                )
                if res.ok:
                    logger.info("Downloaded %s with tier %s", url, tier.value)
                    return Result.success(
                        AcquiredMedia(
                            local_path=out_file,
                            public_url=self.public_url(source_id),
                            metadata=metadata,
                        )
                    )
                detail = (res.stderr or res.stdout or "yt-dlp failed").strip()
                logger.warning("yt-dlp tier %s failed for %s: %s", tier.value, url, detail)
                failures.append(f"[{tier.value}] {detail}")

        return Result.failure(AcquisitionError("\n".join(failures)))

    # ------------------------------------------------------------------
    # Playlists
    # ------------------------------------------------------------------

    def extract_playlist(
        self,
        url: str,
        cancel: threading.Event | None = None,
    ) -> PlaylistInfo | None:
        info = self.fetch_metadata(url, cancel=cancel, allow_playlist=True)
        if info is None:
            return None
        entries: list[PlaylistEntry] = []
        for entry in info.entries or []:
            entry_url = entry.webpage_url or entry.url
            if not entry_url and entry.id:
                entry_url = f"https://www.youtube.com/watch?v={entry.id}"
            if not entry.id or not entry_url:
                continue
            thumbnail = entry.thumbnail
            if thumbnail is None and entry.thumbnails:
                first = entry.thumbnails[0].get("url")
                thumbnail = str(first) if first else None
            entries.append(
                PlaylistEntry(
                    id=entry.id,
                    title=entry.title or "Untitled",
                    url=entry_url,
                    duration=entry.duration,
                    uploader=entry.uploader,
                    thumbnail_url=thumbnail,
                )
            )
        playlist_id = info.id or f"pl_{int(time.time() * 1000)}"
        return PlaylistInfo(id=playlist_id, title=info.title or "Playlist", entries=entries)

    def download_playlist(
        self,
        url: str,
        cancel: threading.Event | None = None,
    ) -> Result[tuple[PlaylistInfo, list[PlaylistDownload]]]:
        """Download every playlist entry; per-entry failures are recorded, not raised."""
        playlist = self.extract_playlist(url, cancel=cancel)
        if playlist is None:
            return Result.failure(AcquisitionError("Failed to fetch playlist metadata"))
        results: list[PlaylistDownload] = []
        for entry in playlist.entries:
            res = self.acquire(entry.url, cancel=cancel)
            if res.ok and res.value is not None:
                results.append(PlaylistDownload(id=entry.id, public_url=res.value.public_url))
            else:
                message = res.error.message if res.error else "download failed"
                results.append(PlaylistDownload(id=entry.id, error=message))
        return Result.success((playlist, results))
