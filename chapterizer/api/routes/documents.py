"""Document formatting endpoint."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends

from chapterizer.analysis.formatting import PageFormatter
from chapterizer.api.deps import get_page_formatter
from chapterizer.api.models import FormatRequest, FormatResponse

router = APIRouter()


@router.post("/api/documents/format", response_model=FormatResponse)
async def format_document(
    body: FormatRequest,
    formatter: Annotated[PageFormatter, Depends(get_page_formatter)],
) -> FormatResponse:
    """Rewrite ``<!-- PAGEBREAK:n -->``-separated text into paginated markdown."""
    result = await asyncio.to_thread(formatter.format_pages, body.text, body.mode)
    return FormatResponse(text=result.unwrap())
