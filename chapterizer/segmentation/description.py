"""Chapters from video descriptions, WebVTT flattening, and one-off line formats."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from chapterizer.segmentation.models import Segment
from chapterizer.segmentation.timestamps import TIME_TOKEN_RE, parse_timestamp

_ISO_DURATION_RE = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
_VTT_CUE_RE = re.compile(r"^(\d{2}:\d{2}:\d{2}\.\d{3})\s*-->\s*(\d{2}:\d{2}:\d{2}\.\d{3})")
_CUSTOM_CHAPTER_RE = re.compile(r"^(\d{1,2}:\d{2}-\d{1,2}:\d{2})\s*(.+?):(.+)$")


@dataclass
class DescriptionChapter:
    title: str
    start_seconds: int


@dataclass
class CustomChapter:
    start_seconds: int | None
    end_seconds: int | None
    title: str
    description: str


def iso8601_duration_to_seconds(value: str | None) -> int | None:
    """Convert ``PT#H#M#S`` to seconds."""
    if not value:
        return None
    match = _ISO_DURATION_RE.match(value)
    if not match:
        return None
    hours, minutes, seconds = (int(g or 0) for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def extract_video_id(url: str) -> str | None:
    """Pull the video id out of watch, youtu.be, embed and shorts URLs."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    host = parsed.hostname or ""
    v = parse_qs(parsed.query).get("v")
    if v and v[0]:
        return v[0]
    parts = [p for p in parsed.path.split("/") if p]
    if host.endswith("youtu.be") and parts:
        return parts[0]
    if re.search(r"youtube\.com$", host, re.IGNORECASE) and len(parts) >= 2:
        if parts[0] in ("embed", "shorts"):
            return parts[1]
    return None


def parse_description_chapters(description: str) -> list[DescriptionChapter]:
    """Find ``0:00 Intro`` style chapter lines in a video description.

    Uses the first timestamp on each line; the title is the text after it,
    or the text before it when nothing follows.
    """
    entries: list[DescriptionChapter] = []
    for raw in (description or "").splitlines():
        if not raw.strip():
            continue
        match = TIME_TOKEN_RE.search(raw)
        if not match:
            continue
        seconds = parse_timestamp(match.group(0))
        if seconds is None:
            continue
        title = re.sub(r"^[\s\-–—:.)\]]+", "", raw[match.end():]).strip()
        if not title:
            title = raw[: match.start()].strip(" \t-–—:([")
        title = title or f"Chapter @ {match.group(0)}"
        entries.append(DescriptionChapter(title=title, start_seconds=seconds))
    entries.sort(key=lambda e: e.start_seconds)
    return entries


def description_chapters_to_segments(
    chapters: list[DescriptionChapter],
    total_duration_seconds: int | None = None,
) -> list[Segment]:
    """Each chapter ends where the next starts; the last ends at the total duration."""
    segments: list[Segment] = []
    for i, chapter in enumerate(chapters):
        start = max(0, math.floor(chapter.start_seconds))
        if i + 1 < len(chapters):
            next_start = chapters[i + 1].start_seconds
        elif total_duration_seconds is not None:
            next_start = total_duration_seconds
        else:
            next_start = start
        end = max(start, math.floor(next_start))
        segments.append(
            Segment(
                title=chapter.title,
                start_seconds=start,
                end_seconds=end,
                order_index=i,
                duration_seconds=end - start if end > start else None,
            )
        )
    return segments


def vtt_to_plain_text(vtt: str) -> str:
    """Flatten WebVTT into ``[start-end] text`` lines.

    Cue numbers, the ``WEBVTT`` header and inline tags are dropped.
    """
    lines = vtt.splitlines()
    out: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1
        match = _VTT_CUE_RE.match(line)
        if not match:
            continue
        text_lines: list[str] = []
        while i < len(lines):
            text = lines[i].strip()
            if not text:
                i += 1
                break
            if _VTT_CUE_RE.match(text):
                break
            i += 1
            if re.match(r"^WEBVTT", text, re.IGNORECASE) or text.isdigit():
                continue
            text_lines.append(text)
        text = re.sub(r"<[^>]+>", "", " ".join(text_lines)).strip()
        if text:
            out.append(f"[{match.group(1)}-{match.group(2)}] {text}")
    return "\n".join(out)


def parse_custom_formatted_chapter(text: str) -> CustomChapter | None:
    """Parse ``(Star)0:28-1:18 Title?:(Star) description(New Line)`` lines."""
    cleaned = text.replace("(Star)", "").replace("(New Line)", "").strip()
    match = _CUSTOM_CHAPTER_RE.match(cleaned)
    if not match:
        return None
    start_token, end_token = match.group(1).split("-")
    return CustomChapter(
        start_seconds=parse_timestamp(start_token),
        end_seconds=parse_timestamp(end_token),
        title=match.group(2).rstrip(":").strip(),
        description=match.group(3).strip(),
    )
