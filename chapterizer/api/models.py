"""Pydantic request/response schemas for the Chapterizer API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from chapterizer.pipeline_config import AnalysisMode, FormatMode


class SegmentRequest(BaseModel):
    """Request body for the /api/segment endpoint."""

    url: str
    total_duration_seconds: int | None = Field(default=None, ge=0)
    mode: AnalysisMode = AnalysisMode.SEGMENTATION
    custom_query: str | None = None
    course_id: str | None = None


class SegmentTextRequest(BaseModel):
    """Request body for /api/segment/text (pasted timestamp summaries)."""

    text: str
    total_duration_seconds: int | None = Field(default=None, ge=0)


class SuggestRequest(BaseModel):
    url: str
    transcript: str | None = None
    custom_prompt: str | None = None


class ChaptersRequest(BaseModel):
    url: str


class SegmentOut(BaseModel):
    """A single time-bounded segment."""

    title: str
    start_seconds: int
    end_seconds: int
    order_index: int
    description: str | None = None
    duration_seconds: int | None = None


class ChapterOut(BaseModel):
    title: str
    order_index: int
    segments: list[SegmentOut]


class SegmentResponse(BaseModel):
    """Response body for the segmentation endpoints."""

    chapters: list[ChapterOut] = []
    raw_text: str | None = None
    public_url: str | None = None
    title: str | None = None
    total_duration_seconds: int | None = None
    chapter_ids: list[str] = []


class SuggestedSegmentOut(BaseModel):
    title: str
    start_seconds: float
    end_seconds: float
    summary: str = ""


class SuggestResponse(BaseModel):
    segments: list[SuggestedSegmentOut]


class ShortRequest(BaseModel):
    """Request body for the /api/shorts endpoint."""

    source_path: str
    start_seconds: float = Field(ge=0)
    end_seconds: float = Field(ge=0)
    short_id: str = Field(pattern=r"^[A-Za-z0-9_-]+$")


class ShortResponse(BaseModel):
    short_id: str
    download_url: str
    thumbnail_url: str | None = None
    duration_seconds: int | None = None


class ShortTitlesRequest(BaseModel):
    descriptions: list[str]
    course_title: str | None = None
    max_length: int = 60


class ShortTitlesResponse(BaseModel):
    titles: list[str]


class FormatRequest(BaseModel):
    """Request body for the /api/documents/format endpoint."""

    text: str
    mode: FormatMode = FormatMode.ORIGINAL


class FormatResponse(BaseModel):
    text: str


class PlaylistRequest(BaseModel):
    url: str


class PlaylistItemOut(BaseModel):
    id: str
    title: str
    url: str
    public_url: str | None = None
    error: str | None = None


class PlaylistResponse(BaseModel):
    id: str
    title: str
    items: list[PlaylistItemOut]


class UploadResponse(BaseModel):
    path: str
    public_url: str
    filename: str


class ChaptersResponse(BaseModel):
    """Chapters read from the video description."""

    segments: list[SegmentOut]
