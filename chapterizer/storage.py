"""Supabase storage helpers for chapters and their segment clips."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from chapterizer.config import Settings
from chapterizer.errors import StorageError

if TYPE_CHECKING:
    from chapterizer.segmentation.models import Chapter

BATCH_SIZE = 50


def get_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client from the configured URL and key."""
    return create_client(settings.supabase_url, settings.supabase_key)


def store_chapters(
    client: Client,
    course_id: str,
    chapters: list[Chapter],
    video_url: str,
    thumbnail_url: str | None = None,
    processing_type: str = "ai",
) -> list[str]:
    """Store each chapter and its segments; return the chapter IDs in order.

    Chapters are inserted one at a time to get their IDs back, segment rows
    go to ``short_videos`` in batches of 50.

    Raises:
        StorageError: Supabase rejected a write or could not be reached.
    """
    chapter_ids: list[str] = []
    rows: list[dict[str, object]] = []
    try:
        for chapter in chapters:
            result = (
                client.table("chapters")
                .insert(
                    {
                        "course_id": course_id,
                        "title": chapter.title,
                        "content_type": "VIDEO",
                        "order_index": chapter.order_index,
                    }
                )
                .execute()
            )
            chapter_id = str(result.data[0]["id"])
            chapter_ids.append(chapter_id)
            for segment in chapter.segments:
                rows.append(
                    {
                        "chapter_id": chapter_id,
                        "title": segment.title,
                        "duration": segment.duration_seconds,
                        "video_url": video_url,
                        "thumbnail_url": thumbnail_url,
                        "start_time": segment.start_seconds,
                        "end_time": segment.end_seconds,
                        "processing_type": processing_type,
                        "custom_query": segment.description,
                        "order_index": segment.order_index,
                    }
                )

        for i in range(0, len(rows), BATCH_SIZE):
            client.table("short_videos").insert(rows[i : i + BATCH_SIZE]).execute()
    except (APIError, httpx.HTTPError) as exc:
        raise StorageError(f"Failed to store chapters for course {course_id}: {exc}") from exc
    return chapter_ids


def update_short_clip(
    client: Client,
    short_id: str,
    download_url: str,
    thumbnail_url: str | None,
    duration_seconds: int | None,
) -> None:
    """Record a generated clip on its ``short_videos`` row."""
    data: dict[str, object] = {"download_url": download_url}
    if thumbnail_url:
        data["thumbnail_url"] = thumbnail_url
    if duration_seconds is not None:
        data["duration"] = duration_seconds
    try:
        client.table("short_videos").update(data).eq("id", short_id).execute()
    except (APIError, httpx.HTTPError) as exc:
        raise StorageError(f"Failed to update short {short_id}: {exc}") from exc
