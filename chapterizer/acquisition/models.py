"""Data models for media acquisition and audio extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class RemoteUrl:
    """A source that has to be fetched with the downloader."""

    url: str


@dataclass(frozen=True)
class LocalFile:
    """A source already on disk (e.g. an upload saved by the web tier)."""

    path: Path
    mime_type: str = "video/mp4"


SourceReference = RemoteUrl | LocalFile


class YtDlpInfo(BaseModel):
    """The subset of ``yt-dlp -J`` output the pipeline relies on."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str | None = None
    description: str | None = None
    duration: float | None = None
    uploader: str | None = None
    upload_date: str | None = None
    thumbnail: str | None = None
    thumbnails: list[dict[str, object]] | None = None
    webpage_url: str | None = None
    url: str | None = None
    entries: list[YtDlpInfo] | None = None
    subtitles: dict[str, list[dict[str, object]]] | None = None
    automatic_captions: dict[str, list[dict[str, object]]] | None = None


YtDlpInfo.model_rebuild()


@dataclass
class MediaMetadata:
    """Descriptive metadata for an acquired source (all fields best effort)."""

    title: str = "Unknown"
    description: str = ""
    duration_seconds: int | None = None
    uploader: str = ""
    upload_date: str = ""
    thumbnail_url: str = ""

    @classmethod
    def from_info(cls, info: YtDlpInfo | None) -> MediaMetadata:
        if info is None:
            return cls()
        return cls(
            title=info.title or "Unknown",
            description=info.description or "",
            duration_seconds=round(info.duration) if info.duration is not None else None,
            uploader=info.uploader or "",
            upload_date=info.upload_date or "",
            thumbnail_url=info.thumbnail or "",
        )


@dataclass
class AcquiredMedia:
    """A media file on local disk plus its stable public path."""

    local_path: Path
    public_url: str
    metadata: MediaMetadata = field(default_factory=MediaMetadata)


@dataclass(frozen=True)
class AudioTrack:
    """Normalized mono audio derived from an acquired media file."""

    local_path: Path


@dataclass
class PlaylistEntry:
    id: str
    title: str
    url: str
    duration: float | None = None
    uploader: str | None = None
    thumbnail_url: str | None = None


@dataclass
class PlaylistInfo:
    id: str
    title: str
    entries: list[PlaylistEntry] = field(default_factory=list)


@dataclass
class PlaylistDownload:
    """Outcome of one playlist entry download; exactly one of the fields is set."""

    id: str
    public_url: str | None = None
    error: str | None = None
