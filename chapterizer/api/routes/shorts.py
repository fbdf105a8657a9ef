"""Short clip endpoints: cut a segment out of a source, suggest clip titles."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from chapterizer.acquisition.clips import ZERO_DURATION, ClipGenerator
from chapterizer.acquisition.downloader import MediaAcquirer
from chapterizer.acquisition.models import LocalFile
from chapterizer.analysis.structured import StructuredSegmentClient
from chapterizer.api.deps import (
    get_acquirer,
    get_clip_generator,
    get_store,
    get_structured_client,
)
from chapterizer.api.models import (
    ShortRequest,
    ShortResponse,
    ShortTitlesRequest,
    ShortTitlesResponse,
)
from chapterizer.errors import TranscodeError
from chapterizer.storage import update_short_clip

router = APIRouter()


def resolve_source_path(source_path: str, media_root: Path) -> Path:
    """Public paths like ``/downloads/videos/x/x.mp4`` live under the media root."""
    path = Path(source_path)
    if path.is_file():
        return path
    return media_root / source_path.lstrip("/")


@router.post("/api/shorts", response_model=ShortResponse)
async def create_short(
    body: ShortRequest,
    acquirer: Annotated[MediaAcquirer, Depends(get_acquirer)],
    clips: Annotated[ClipGenerator, Depends(get_clip_generator)],
    store: Annotated[Client | None, Depends(get_store)],
) -> ShortResponse:
    """Trim ``[start_seconds, end_seconds)`` into ``downloads/shorts/<short_id>/``.

    When Supabase is configured the clip is recorded on the ``short_videos``
    row with the same id.
    """
    source = resolve_source_path(body.source_path, clips.media_root)
    media = acquirer.acquire_local(LocalFile(path=source)).unwrap()

    result = await asyncio.to_thread(
        clips.generate_short,
        body.short_id,
        media.local_path,
        body.start_seconds,
        body.end_seconds,
    )
    if result.error == ZERO_DURATION:
        raise HTTPException(status_code=400, detail=ZERO_DURATION)
    if not result.ok or result.download_url is None:
        raise TranscodeError(result.error or "clip generation failed")
    if store is not None:
        await asyncio.to_thread(
            update_short_clip,
            store,
            body.short_id,
            result.download_url,
            result.thumbnail_url,
            result.duration_seconds,
        )
    return ShortResponse(
        short_id=body.short_id,
        download_url=result.download_url,
        thumbnail_url=result.thumbnail_url,
        duration_seconds=result.duration_seconds,
    )


@router.post("/api/shorts/titles", response_model=ShortTitlesResponse)
async def short_titles(
    body: ShortTitlesRequest,
    client: Annotated[StructuredSegmentClient, Depends(get_structured_client)],
) -> ShortTitlesResponse:
    titles = await asyncio.to_thread(
        client.suggest_short_titles, body.descriptions, body.course_title, body.max_length
    )
    return ShortTitlesResponse(titles=titles)
