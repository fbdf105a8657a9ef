"""Batch markdown formatting of paginated document text."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from chapterizer.analysis.gemini import DEFAULT_GENERATION_CONFIG, GeminiClient
from chapterizer.analysis.prompts import format_pages_prompt
from chapterizer.config import Settings
from chapterizer.errors import AnalysisError, Result
from chapterizer.pipeline_config import FormatMode

logger = logging.getLogger(__name__)

PAGEBREAK_RE = re.compile(r"<!--\s*PAGEBREAK:\s*\d+\s*-->")

PAGES_PER_BATCH = 5
PAGE_SIZE_CHARS = 4000
BATCH_DELAY_SECONDS = 4.0  # keeps the free tier under 15 requests/minute
DEFAULT_RETRY_AFTER_SECONDS = 60.0
MAX_RATE_LIMIT_RETRIES = 5


@dataclass
class FormatCursor:
    """Where a formatting run resumes after a rate-limit wait."""

    next_batch_index: int = 0
    pages_completed: int = 0

    def advance(self, pages: int) -> None:
        self.next_batch_index += 1
        self.pages_completed += pages


def split_pages(text: str) -> list[str]:
    return [page.strip() for page in PAGEBREAK_RE.split(text) if page.strip()]


def paginate_markdown(text: str, size: int = PAGE_SIZE_CHARS) -> str:
    """Insert ``<!-- PAGEBREAK:n -->`` markers every *size* characters.

    Breaks prefer a paragraph boundary, then a line boundary, as long as it
    falls in the second half of the window.
    """
    if not text or len(text) <= size:
        return f"<!-- PAGEBREAK:1 -->\n\n{text}"

    chunks: list[str] = []
    page = 1
    remaining = text
    while remaining:
        chunks.append(f"<!-- PAGEBREAK:{page} -->")
        split_at = min(len(remaining), size)
        if len(remaining) > size:
            candidate = remaining.rfind("\n\n", 0, size + 2)
            if candidate > size / 2:
                split_at = candidate
            else:
                candidate = remaining.rfind("\n", 0, size + 1)
                if candidate > size / 2:
                    split_at = candidate
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].strip()
        page += 1
    return "\n\n".join(chunks)


def parse_retry_after(value: str | None) -> float:
    if not value:
        return DEFAULT_RETRY_AFTER_SECONDS
    try:
        seconds = float(value.strip())
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS
    return seconds if seconds >= 0 else DEFAULT_RETRY_AFTER_SECONDS


class PageFormatter(GeminiClient):
    """Rewrite extracted document pages into markdown, five pages per request.

    Rate limiting (HTTP 429) is the only retried failure: the formatter waits for
    ``Retry-After`` (60 s when absent) and resumes at the same batch. Any
    other failure leaves a marker line in the output and moves on.
    """

    def __init__(
        self,
        settings: Settings,
        sdk: Any = genai,
        sleep: Callable[[float], None] = time.sleep,
        batch_delay_seconds: float = BATCH_DELAY_SECONDS,
        max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES,
    ) -> None:
        super().__init__(settings, sdk, sleep)
        self.batch_delay_seconds = batch_delay_seconds
        self.max_rate_limit_retries = max_rate_limit_retries

    def format_pages(self, text: str, mode: FormatMode = FormatMode.ORIGINAL) -> Result[str]:
        if not text:
            return Result.failure(AnalysisError("No text provided to format."))
        missing = self.missing_key_error()
        if missing is not None:
            return Result.failure(missing)
        self.configure()

        pages = split_pages(text)
        if not pages:
            return Result.failure(
                AnalysisError("No content to format after splitting by page breaks.")
            )
        batches = [pages[i : i + PAGES_PER_BATCH] for i in range(0, len(pages), PAGES_PER_BATCH)]

        cursor = FormatCursor()
        formatted: list[str] = []
        rate_limited = 0
        while cursor.next_batch_index < len(batches):
            batch = batches[cursor.next_batch_index]
            start_page = cursor.pages_completed + 1
            end_page = cursor.pages_completed + len(batch)
            if self.batch_delay_seconds:
                self.sleep(self.batch_delay_seconds)

            prompt = format_pages_prompt(mode, start_page, end_page, "\n\n".join(batch))
            try:
                response = self.send_generate([prompt], DEFAULT_GENERATION_CONFIG)
            except google_exceptions.TooManyRequests as exc:
                if rate_limited < self.max_rate_limit_retries:
                    headers = getattr(exc.response, "headers", None) or {}
                    delay = parse_retry_after(headers.get("Retry-After"))
                    rate_limited += 1
                    logger.info(
                        "Rate limited. Retrying pages %d-%d in %.0f seconds",
                        start_page, end_page, delay,
                    )
                    self.sleep(delay)
                    continue
                logger.error("Still rate limited for pages %d-%d: %s", start_page, end_page, exc)
                formatted.append(f"--- Pages {start_page}-{end_page} Formatting Failed ---")
            except google_exceptions.GoogleAPICallError as exc:
                logger.error("Gemini API error for pages %d-%d: %s", start_page, end_page, exc)
                formatted.append(f"--- Pages {start_page}-{end_page} Formatting Failed ---")
            except Exception as exc:
                logger.error("Error formatting pages %d-%d: %s", start_page, end_page, exc)
                formatted.append(
                    f"--- Pages {start_page}-{end_page} Formatting Failed with exception ---"
                )
            else:
                result = self.read_text(response)
                if result.ok:
                    formatted.append(result.unwrap())
                else:
                    formatted.append(
                        f"--- Pages {start_page}-{end_page} Formatting Returned No Content ---"
                    )
            rate_limited = 0
            cursor.advance(len(batch))

        return Result.success(paginate_markdown("\n\n".join(formatted)))
