"""Turn parsed groups into final, time-bounded segments."""

from __future__ import annotations

import math

from chapterizer.segmentation.models import Chapter, ParsedGroup, ParsedItem, Segment

FALLBACK_GROUP_TITLE = "AI Segments"
FALLBACK_SEGMENT_TITLE = "Full Video"
DEFAULT_SEGMENT_SECONDS = 60


class ChapterBuilder:
    """Resolve end times and order indexes for parsed groups.

    End time precedence for each item:

    1. the item's explicit end (strict ``start-end`` lines),
    2. the next item's start in the same group,
    3. the next group's first start,
    4. the total duration of the source,
    5. ``start + 60``.
    """

    def __init__(
        self,
        fallback_group_title: str = FALLBACK_GROUP_TITLE,
        fallback_segment_title: str = FALLBACK_SEGMENT_TITLE,
    ) -> None:
        self.fallback_group_title = fallback_group_title
        self.fallback_segment_title = fallback_segment_title

    def build(
        self,
        groups: list[ParsedGroup],
        total_duration_seconds: int | None = None,
    ) -> list[Segment]:
        """Return segments in group order, then item order within each group."""
        chapters = self.build_chapters(groups, total_duration_seconds)
        return [seg for chapter in chapters for seg in chapter.segments]

    def build_chapters(
        self,
        groups: list[ParsedGroup],
        total_duration_seconds: int | None = None,
    ) -> list[Chapter]:
        total = math.floor(total_duration_seconds) if total_duration_seconds else None

        if not groups:
            end = total or 0
            fallback = Segment(
                title=self.fallback_segment_title,
                start_seconds=0,
                end_seconds=end,
                order_index=0,
                group_title=self.fallback_group_title,
                duration_seconds=end or None,
            )
            return [Chapter(title=self.fallback_group_title, order_index=0, segments=[fallback])]

        chapters: list[Chapter] = []
        for g_idx, group in enumerate(groups):
            title = group.title or f"Topic {g_idx + 1}"
            next_group_start = (
                groups[g_idx + 1].first_start_seconds if g_idx + 1 < len(groups) else None
            )
            items = group.items or [
                ParsedItem(
                    title=title,
                    start_seconds=group.first_start_seconds or 0,
                    end_seconds=group.end_seconds,
                    description=group.description,
                )
            ]

            chapter = Chapter(title=title, order_index=g_idx)
            for i, item in enumerate(items):
                next_item_start = items[i + 1].start_seconds if i + 1 < len(items) else None
                resolved = _first_not_none(
                    item.end_seconds,
                    next_item_start,
                    next_group_start,
                    total,
                    item.start_seconds + DEFAULT_SEGMENT_SECONDS,
                )
                start = max(0, math.floor(item.start_seconds))
                end = max(start, math.floor(resolved))
                chapter.segments.append(
                    Segment(
                        title=item.title or f"Segment {i + 1}",
                        start_seconds=start,
                        end_seconds=end,
                        order_index=i,
                        description=item.description.strip() if item.description else None,
                        group_index=g_idx,
                        group_title=title,
                        duration_seconds=end - start if end > start else None,
                    )
                )
            chapters.append(chapter)
        return chapters


def _first_not_none(*values: int | None) -> int:
    for value in values:
        if value is not None:
            return value
    raise ValueError("no candidate end time")
