"""Segmentation endpoints: full pipeline, pasted summaries, and suggestions."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends
from supabase import Client

from chapterizer.acquisition.downloader import MediaAcquirer
from chapterizer.acquisition.youtube import YouTubeClient
from chapterizer.analysis.structured import StructuredSegmentClient
from chapterizer.api.deps import (
    get_acquirer,
    get_pipeline,
    get_store,
    get_structured_client,
    get_youtube_client,
)
from chapterizer.api.models import (
    ChapterOut,
    ChaptersRequest,
    ChaptersResponse,
    SegmentOut,
    SegmentRequest,
    SegmentResponse,
    SegmentTextRequest,
    SuggestedSegmentOut,
    SuggestRequest,
    SuggestResponse,
)
from chapterizer.errors import ConfigurationError, Result
from chapterizer.pipeline import SegmentationPipeline
from chapterizer.pipeline_config import AnalysisMode, PipelineConfig
from chapterizer.segmentation.description import extract_video_id
from chapterizer.segmentation.models import Chapter, Segment
from chapterizer.storage import store_chapters

router = APIRouter()

T = TypeVar("T")


async def run_cancellable(fn: Callable[[threading.Event], Result[T]]) -> Result[T]:
    """Run *fn* in a worker thread; a cancelled request sets its token."""
    cancel = threading.Event()
    try:
        return await asyncio.to_thread(fn, cancel)
    except asyncio.CancelledError:
        cancel.set()
        raise


def segment_out(segment: Segment) -> SegmentOut:
    return SegmentOut(
        title=segment.title,
        start_seconds=segment.start_seconds,
        end_seconds=segment.end_seconds,
        order_index=segment.order_index,
        description=segment.description,
        duration_seconds=segment.duration_seconds,
    )


def chapters_out(chapters: list[Chapter]) -> list[ChapterOut]:
    return [
        ChapterOut(
            title=chapter.title,
            order_index=chapter.order_index,
            segments=[segment_out(s) for s in chapter.segments],
        )
        for chapter in chapters
    ]


def processing_type(body: SegmentRequest) -> str:
    if body.mode is AnalysisMode.TRANSCRIPTION:
        return "transcript"
    if body.custom_query and body.custom_query.strip():
        return "custom"
    return "ai"


def caption_transcript(url: str, acquirer: MediaAcquirer, youtube: YouTubeClient) -> str | None:
    """Timestamped caption text for YouTube URLs; ``None`` for anything else."""
    if not extract_video_id(url):
        return None
    info = acquirer.fetch_metadata(url)
    if info is None:
        return None
    return youtube.fetch_timestamped_transcript(info)


@router.post("/api/segment", response_model=SegmentResponse)
async def segment(
    body: SegmentRequest,
    pipeline: Annotated[SegmentationPipeline, Depends(get_pipeline)],
    store: Annotated[Client | None, Depends(get_store)],
) -> SegmentResponse:
    """Download, analyze and segment a remote video.

    With a ``course_id`` the chapters are also stored in Supabase. Failures
    come back as ``{"error": ...}`` with a status that reflects the failing
    stage.
    """
    if body.course_id and store is None:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set to store chapters")

    config = PipelineConfig(mode=body.mode, custom_query=body.custom_query)
    result = await run_cancellable(
        lambda cancel: pipeline.run(
            body.url,
            config=config,
            total_duration_seconds=body.total_duration_seconds,
            cancel=cancel,
        )
    )
    output = result.unwrap()
    public_url = output.media.public_url if output.media else None

    chapter_ids: list[str] = []
    if body.course_id and store is not None:
        thumbnail = output.media.metadata.thumbnail_url if output.media else ""
        chapter_ids = await asyncio.to_thread(
            store_chapters,
            store,
            body.course_id,
            output.chapters,
            public_url or body.url,
            thumbnail or None,
            processing_type(body),
        )

    return SegmentResponse(
        chapters=chapters_out(output.chapters),
        raw_text=output.raw_text,
        public_url=public_url,
        title=output.media.metadata.title if output.media else None,
        total_duration_seconds=output.total_duration_seconds,
        chapter_ids=chapter_ids,
    )


@router.post("/api/segment/text", response_model=SegmentResponse)
async def segment_text(
    body: SegmentTextRequest,
    pipeline: Annotated[SegmentationPipeline, Depends(get_pipeline)],
) -> SegmentResponse:
    """Build chapters from a pasted timestamp summary (manual segmentation)."""
    chapters = pipeline.segment_text(body.text, body.total_duration_seconds)
    return SegmentResponse(
        chapters=chapters_out(chapters),
        total_duration_seconds=body.total_duration_seconds,
    )


@router.post("/api/segment/suggest", response_model=SuggestResponse)
async def suggest(
    body: SuggestRequest,
    client: Annotated[StructuredSegmentClient, Depends(get_structured_client)],
    acquirer: Annotated[MediaAcquirer, Depends(get_acquirer)],
    youtube: Annotated[YouTubeClient, Depends(get_youtube_client)],
) -> SuggestResponse:
    """Suggest segments; YouTube captions stand in for a missing transcript."""
    transcript = body.transcript
    if not transcript:
        transcript = await asyncio.to_thread(caption_transcript, body.url, acquirer, youtube)
    result = await asyncio.to_thread(
        client.suggest_segments, body.url, transcript, body.custom_prompt
    )
    return SuggestResponse(
        segments=[
            SuggestedSegmentOut(
                title=s.title,
                start_seconds=s.start_seconds,
                end_seconds=s.end_seconds,
                summary=s.summary,
            )
            for s in result.unwrap()
        ]
    )


@router.post("/api/segment/chapters", response_model=ChaptersResponse)
async def description_chapters(
    body: ChaptersRequest,
    client: Annotated[YouTubeClient, Depends(get_youtube_client)],
) -> ChaptersResponse:
    """Chapters listed in the video description; empty when there are none."""
    segments = await asyncio.to_thread(client.fetch_chapters, body.url)
    return ChaptersResponse(segments=[segment_out(s) for s in segments])
