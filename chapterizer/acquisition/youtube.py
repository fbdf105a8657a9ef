"""YouTube Data API chapters and caption-track transcripts over HTTP."""

from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from chapterizer.acquisition.models import YtDlpInfo
from chapterizer.config import Settings
from chapterizer.segmentation.description import (
    description_chapters_to_segments,
    extract_video_id,
    iso8601_duration_to_seconds,
    parse_description_chapters,
    vtt_to_plain_text,
)
from chapterizer.segmentation.models import Segment

logger = logging.getLogger(__name__)

VIDEOS_ENDPOINT = "https://www.googleapis.com/youtube/v3/videos"


class _Snippet(BaseModel):
    model_config = ConfigDict(extra="ignore")

    description: str = ""


class _ContentDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    duration: str | None = None


class _VideoItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    snippet: _Snippet = _Snippet()
    contentDetails: _ContentDetails = _ContentDetails()  # noqa: N815


class VideosResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: list[_VideoItem] = []


class YouTubeClient:
    """Best-effort helpers; every failure degrades to an empty result."""

    def __init__(self, http: httpx.Client, settings: Settings) -> None:
        self.http = http
        self.settings = settings

    def fetch_chapters(self, url: str) -> list[Segment]:
        """Chapters from the video description via the YouTube Data API.

        Returns ``[]`` when the API key is missing, the URL carries no video
        id, the request fails, or the description has no timestamps.
        """
        if not self.settings.youtube_api_key:
            return []
        video_id = extract_video_id(url)
        if not video_id:
            return []
        try:
            response = self.http.get(
                VIDEOS_ENDPOINT,
                params={
                    "part": "snippet,contentDetails",
                    "id": video_id,
                    "key": self.settings.youtube_api_key,
                },
                timeout=15.0,
            )
        except httpx.HTTPError as exc:
            logger.warning("YouTube Data API request failed for %s: %s", video_id, exc)
            return []
        if response.status_code != 200:
            logger.warning("YouTube Data API returned %s for %s", response.status_code, video_id)
            return []
        try:
            data = VideosResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning("Unexpected YouTube Data API payload for %s: %s", video_id, exc)
            return []
        if not data.items:
            return []
        item = data.items[0]
        chapters = parse_description_chapters(item.snippet.description)
        if not chapters:
            return []
        total = iso8601_duration_to_seconds(item.contentDetails.duration)
        return description_chapters_to_segments(chapters, total)

    def pick_caption_url(self, info: YtDlpInfo) -> str | None:
        """Choose a caption track URL, preferring manual subtitles and VTT."""
        for tracks in (info.subtitles or {}, info.automatic_captions or {}):
            url = _pick_track(tracks, self.settings.preferred_transcript_langs)
            if url:
                return url
        return None

    def fetch_transcript_vtt(self, info: YtDlpInfo) -> str | None:
        url = self.pick_caption_url(info)
        if not url:
            return None
        try:
            response = self.http.get(url, timeout=30.0)
        except httpx.HTTPError as exc:
            logger.warning("Caption download failed: %s", exc)
            return None
        if response.status_code != 200:
            return None
        return response.text or None

    def fetch_timestamped_transcript(self, info: YtDlpInfo) -> str | None:
        """Caption track flattened to ``[start-end] text`` lines, or ``None``."""
        vtt = self.fetch_transcript_vtt(info)
        if not vtt:
            return None
        return vtt_to_plain_text(vtt) or None


def _pick_track(tracks: dict[str, list[dict[str, object]]], langs: list[str]) -> str | None:
    for lang in langs:
        candidates = tracks.get(lang) or []
        for track in candidates:
            kind = str(track.get("ext") or track.get("format") or "").lower()
            if "vtt" in kind and track.get("url"):
                return str(track["url"])
        if candidates and candidates[0].get("url"):
            return str(candidates[0]["url"])
    for candidates in tracks.values():
        if candidates and candidates[0].get("url"):
            return str(candidates[0]["url"])
    return None
