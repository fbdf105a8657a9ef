"""JSON-mode segment suggestions and short-title generation.

Models are asked for strict JSON, but they still wrap it in markdown fences
now and then. :func:`decode_json_payload` tries the raw text first and then
the first fenced block.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from chapterizer.analysis.gemini import GeminiClient
from chapterizer.analysis.prompts import SHORT_TITLES_PROMPT, structured_prompt
from chapterizer.analysis.schemas import SegmentSuggestions, TitleSuggestions
from chapterizer.errors import AnalysisError, Result

logger = logging.getLogger(__name__)

FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)\n```")

MAX_TITLE_LENGTH = 120
MAX_SUMMARY_LENGTH = 2000
MIN_SHORT_TITLE_LENGTH = 20
MAX_SHORT_TITLE_LENGTH = 100

JSON_GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.2,
    "response_mime_type": "application/json",
}


class StructuredDecodeError(AnalysisError):
    """Model output was neither valid JSON nor a fenced JSON block."""

    kind = "structured_decode_error"


@dataclass
class SuggestedSegment:
    title: str
    start_seconds: float
    end_seconds: float
    summary: str = ""


def decode_json_payload(text: str) -> Result[Any]:
    """Parse *text* as JSON, falling back to the first fenced code block."""
    try:
        return Result.success(json.loads(text))
    except (TypeError, ValueError):
        pass
    match = FENCED_JSON_RE.search(text or "")
    if match:
        try:
            return Result.success(json.loads(match.group(1)))
        except ValueError as exc:
            return Result.failure(StructuredDecodeError(f"Fenced block is not valid JSON: {exc}"))
    preview = (text or "")[:200]
    return Result.failure(StructuredDecodeError(f"Model output is not JSON: {preview!r}"))


class StructuredSegmentClient(GeminiClient):
    """Segment suggestions straight from a URL or a timestamped transcript."""

    def suggest_segments(
        self,
        url: str,
        transcript: str | None = None,
        custom_prompt: str | None = None,
    ) -> Result[list[SuggestedSegment]]:
        missing = self.missing_key_error()
        if missing is not None:
            return Result.failure(missing)

        self.configure()
        prompt = structured_prompt(url, transcript, custom_prompt)
        generated = self.generate([prompt], JSON_GENERATION_CONFIG)
        if not generated.ok:
            return Result.failure(generated.error)  # type: ignore[arg-type]

        decoded = decode_json_payload(generated.unwrap())
        if not decoded.ok:
            logger.warning("Segment suggestions could not be decoded: %s", decoded.error)
            return Result.failure(decoded.error)  # type: ignore[arg-type]
        try:
            payload = SegmentSuggestions.model_validate(decoded.unwrap())
        except ValidationError as exc:
            return Result.failure(StructuredDecodeError(f"Unexpected segments payload: {exc}"))

        segments: list[SuggestedSegment] = []
        for entry in payload.segments:
            start, end = entry.start_seconds, entry.end_seconds
            if start is None or end is None:
                continue
            if not (math.isfinite(start) and math.isfinite(end)) or end <= start:
                continue
            segments.append(
                SuggestedSegment(
                    title=(entry.title or "Segment").strip()[:MAX_TITLE_LENGTH],
                    start_seconds=start,
                    end_seconds=end,
                    summary=(entry.summary or "").strip()[:MAX_SUMMARY_LENGTH],
                )
            )
        logger.info("Model suggested %d usable segments for %s", len(segments), url)
        return Result.success(segments)

    def suggest_short_titles(
        self,
        descriptions: list[str],
        course_title: str | None = None,
        max_length: int = 60,
    ) -> list[str]:
        """One short title per description, or ``[]`` when anything goes wrong."""
        if not descriptions or self.missing_key_error() is not None:
            return []
        limit = max(MIN_SHORT_TITLE_LENGTH, min(MAX_SHORT_TITLE_LENGTH, max_length))
        prompt = SHORT_TITLES_PROMPT.format(
            count=len(descriptions),
            course=f" from a course titled: {course_title}" if course_title else "",
            max_length=limit,
            descriptions="\n".join(f"{i + 1}. {d}" for i, d in enumerate(descriptions)),
        )
        self.configure()
        generated = self.generate([prompt], JSON_GENERATION_CONFIG)
        if not generated.ok:
            logger.warning("Short title request failed: %s", generated.error)
            return []
        decoded = decode_json_payload(generated.unwrap())
        if not decoded.ok:
            return []
        try:
            payload = TitleSuggestions.model_validate(decoded.unwrap())
        except ValidationError:
            return []

        titles: list[str] = []
        for i in range(len(descriptions)):
            raw = payload.titles[i] if i < len(payload.titles) else None
            title = (raw or "").strip()[:limit]
            titles.append(title or f"Segment {i + 1}")
        return titles
