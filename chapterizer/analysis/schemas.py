"""Pydantic schemas for the JSON payloads the structured prompts ask Gemini for.

Only the fields we read are declared; everything else is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _GeminiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SuggestedSegment(_GeminiModel):
    """One entry of the ``{"segments": [...]}`` JSON the structured variant asks for."""

    title: str | None = None
    start_seconds: float | None = Field(default=None, alias="startSeconds")
    end_seconds: float | None = Field(default=None, alias="endSeconds")
    summary: str | None = None


class SegmentSuggestions(_GeminiModel):
    segments: list[SuggestedSegment] = Field(default_factory=list)


class TitleSuggestions(_GeminiModel):
    titles: list[str | None] = Field(default_factory=list)
