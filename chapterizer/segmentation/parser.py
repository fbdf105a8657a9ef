"""Parse free-form, timestamped model output into ordered topic groups.

Generation models answer in loosely formatted prose: bolded topic headings,
bulleted sub-items with time ranges, or bare lines with a timestamp somewhere
in them. Every non-blank line is classified on its own, then the entries are
grouped under the nearest preceding top-level entry and sorted by time,
because the model does not guarantee chronological output order.

Supported line shapes::

    **Topic 1: Basics**
    * 0:00-0:30 **Intro:** Welcome message
    1:45 Skipping ahead into advanced topics
      - Recap of 0:01 intro 2:10
    [01:02:03] Closing remarks - wrap-up and questions
    (Star)0:28-1:18 Pricing:(Star) plans and discounts(New Line)
"""

from __future__ import annotations

import logging
import re

from chapterizer.segmentation.description import parse_custom_formatted_chapter
from chapterizer.segmentation.models import ParsedEntry, ParsedGroup, ParsedItem, ParseResult
from chapterizer.segmentation.timestamps import TIME_TOKEN_RE, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_GROUP_TITLE = "Manual Segments"

TOPIC_RE = re.compile(r"^\*\*Topic \d+:(?!\d)\s*")

# Marks the hand-formatted chapter lines pasted from course editors
CUSTOM_MARKER = "(Star)"

_TOKEN = r"\d{1,2}:\d{2}(?::\d{2})?"
SUBTOPIC_RE = re.compile(rf"^\* ({_TOKEN})-({_TOKEN}) \*\*(.*?):\*\* (.*)$")

BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)]|\[\d+\])\s+")

# Leading list marker and emphasis before the first real character
_CONTENT_START_RE = re.compile(r"^\s*(?:(?:[-*•]|\d+[.)]|\[\d+\])\s+)?[*_(]*")

# "- 0:30" / "to 0:30" immediately after a start token
_RANGE_END_RE = re.compile(rf"^\s*(?:-|–|—|to)\s*\[?({_TOKEN}(?:\.\d+)?)\]?")

# Split "Title: Description" / "Title - Description" only where the separator
# is followed by whitespace, so "Real-world" stays one word.
TITLE_SPLIT_RE = re.compile(r"^(.*?)\s*(?::|[-‐–—])\s+(.*)$", re.DOTALL)

_TRAILING_SEP_RE = re.compile(r"[\s\-–—:]+$")
_LEADING_SEP_RE = re.compile(r"^[\s\-–—:.)\]]+")
_EMPTY_BRACKETS_RE = re.compile(r"\(\s*\)|\[\s*\]")


def split_title_description(text: str) -> tuple[str, str | None]:
    """Split *text* on the first ``:`` or dash that is followed by whitespace."""
    text = text.strip()
    match = TITLE_SPLIT_RE.match(text)
    if not match:
        return text, None
    title = match.group(1).strip()
    description = match.group(2).strip()
    if "\n" in description:
        description = description.split("\n", 1)[0].strip()
    if not title:
        return description, None
    return title, description or None


def _clean_text(text: str) -> str:
    """Drop list markers, bold markers and stray brackets around a text fragment."""
    text = BULLET_RE.sub("", text)
    text = text.replace("**", "")
    text = re.sub(r"^[\s(\[]+|[\s(\[]+$", "", text)
    # Trailing closers are kept only when they close something in the text
    opens = text.count("(") + text.count("[")
    while text.endswith((")", "]")) and text.count(")") + text.count("]") > opens:
        text = text[:-1].rstrip()
    return text.strip()


def _infer_level(raw: str) -> int:
    leading_space = len(raw) - len(raw.lstrip())
    return 1 if leading_space >= 2 or BULLET_RE.match(raw) else 0


class TimestampParser:
    """Classify lines of model output and build ordered groups."""

    def __init__(self, default_group_title: str = DEFAULT_GROUP_TITLE) -> None:
        self.default_group_title = default_group_title

    def parse(self, text: str) -> ParseResult:
        """Parse *text* into groups sorted by start time.

        Returns an empty :class:`ParseResult` when no line is recognised;
        callers fall back to a single whole-source segment in that case.
        """
        entries = self.parse_entries(text)
        if not entries:
            logger.info("No timestamped entries found in %d characters of text", len(text or ""))
            return ParseResult()
        groups = self.group_entries(entries)
        return ParseResult(groups=self.sort_groups(groups))

    # ------------------------------------------------------------------
    # Line classification
    # ------------------------------------------------------------------

    def parse_entries(self, text: str) -> list[ParsedEntry]:
        entries: list[ParsedEntry] = []
        for raw in (text or "").splitlines():
            if not raw.strip():
                continue
            entry = self.parse_line(raw)
            if entry is not None:
                entries.append(entry)
        return entries

    def parse_line(self, raw: str) -> ParsedEntry | None:
        stripped = raw.strip()

        if CUSTOM_MARKER in stripped:
            custom = parse_custom_formatted_chapter(stripped)
            if custom is not None and custom.start_seconds is not None:
                return ParsedEntry(
                    level=1,
                    start_seconds=custom.start_seconds,
                    end_seconds=custom.end_seconds,
                    title=custom.title,
                    description=custom.description or None,
                )

        if TOPIC_RE.match(stripped):
            return self._parse_heading(TOPIC_RE.sub("", stripped, count=1))

        strict = SUBTOPIC_RE.match(stripped)
        if strict:
            start = parse_timestamp(strict.group(1))
            if start is None:
                return None
            return ParsedEntry(
                level=1,
                start_seconds=start,
                end_seconds=parse_timestamp(strict.group(2)),
                title=strict.group(3).replace("**", "").strip(),
                description=strict.group(4).strip() or None,
            )

        return self._parse_fallback(raw)

    def _parse_heading(self, rest: str) -> ParsedEntry:
        start: int | None = None
        end: int | None = None
        match = TIME_TOKEN_RE.search(rest)
        if match:
            start = parse_timestamp(match.group(0))
            after = rest[match.end():]
            range_end = _RANGE_END_RE.match(after)
            if range_end:
                end = parse_timestamp(range_end.group(1))
                after = after[range_end.end():]
            rest = _EMPTY_BRACKETS_RE.sub("", f"{rest[: match.start()]}{after}")
        title, description = split_title_description(_clean_text(rest))
        return ParsedEntry(
            level=0,
            start_seconds=start,
            end_seconds=end,
            title=title,
            description=description,
            is_heading=True,
        )

    def _parse_fallback(self, raw: str) -> ParsedEntry | None:
        matches = list(TIME_TOKEN_RE.finditer(raw))
        if not matches:
            return None

        # A timestamp that opens the line is its label; anywhere else the
        # last one wins, since descriptions restate earlier times first.
        content_start = _CONTENT_START_RE.match(raw)
        leads = content_start is not None and matches[0].start() == content_start.end()
        chosen = matches[0] if leads else matches[-1]

        start = parse_timestamp(chosen.group(0))
        if start is None:
            return None

        end: int | None = None
        after = raw[chosen.end():]
        if leads:
            range_end = _RANGE_END_RE.match(after)
            if range_end:
                end = parse_timestamp(range_end.group(1))
                after = after[range_end.end():]

        trailing = _LEADING_SEP_RE.sub("", after).strip()
        leading = raw[: chosen.start()].strip()
        if leading:
            earlier = list(TIME_TOKEN_RE.finditer(leading))
            if earlier:
                # Drop the earlier token (e.g. the start of a range) and its separator
                token = earlier[-1]
                rest = _LEADING_SEP_RE.sub("", leading[token.end():])
                joined = " ".join(f"{leading[: token.start()]} {rest}".split())
                leading = _TRAILING_SEP_RE.sub("", joined).strip()
        leading = _clean_text(leading)

        text_part = leading or _clean_text(trailing)
        title, description = split_title_description(text_part) if text_part else ("", None)

        return ParsedEntry(
            level=_infer_level(raw),
            start_seconds=start,
            end_seconds=end,
            title=title,
            description=description,
        )

    # ------------------------------------------------------------------
    # Grouping and ordering
    # ------------------------------------------------------------------

    def group_entries(self, entries: list[ParsedEntry]) -> list[ParsedGroup]:
        """Attach level-1 entries to the nearest preceding level-0 entry."""
        groups: list[ParsedGroup] = []
        current: ParsedGroup | None = None

        for entry in entries:
            if entry.level == 0:
                if (
                    not entry.is_heading
                    and current is not None
                    and current.from_heading
                    and current.first_start_seconds is None
                    and not current.items
                ):
                    # A bare timestamped line right under an untimed heading
                    # anchors that heading instead of opening a new topic.
                    current.first_start_seconds = entry.start_seconds
                    if not current.description:
                        current.description = _join(entry.title, entry.description)
                    continue
                current = ParsedGroup(
                    title=entry.title,
                    description=entry.description,
                    first_start_seconds=entry.start_seconds,
                    end_seconds=entry.end_seconds,
                    from_heading=entry.is_heading,
                )
                groups.append(current)
                continue

            if current is None:
                current = ParsedGroup(
                    title=self.default_group_title,
                    first_start_seconds=entry.start_seconds,
                )
                groups.append(current)
            current.items.append(
                ParsedItem(
                    title=entry.title,
                    start_seconds=entry.start_seconds or 0,
                    end_seconds=entry.end_seconds,
                    description=entry.description,
                )
            )

        for group in groups:
            if group.first_start_seconds is None and group.items:
                group.first_start_seconds = min(item.start_seconds for item in group.items)
        return groups

    @staticmethod
    def sort_groups(groups: list[ParsedGroup]) -> list[ParsedGroup]:
        """Sort items by start and groups by first start.

        A group without any start keeps its input position: it sorts with
        the start of the group before it (or 0 when it comes first).
        """
        keys: list[int] = []
        carried = 0
        for group in groups:
            if group.first_start_seconds is not None:
                carried = group.first_start_seconds
            keys.append(carried)
            group.items.sort(key=lambda item: item.start_seconds)

        order = sorted(range(len(groups)), key=lambda i: (keys[i], i))
        return [groups[i] for i in order]


def _join(title: str, description: str | None) -> str:
    return f"{title}: {description}" if description else title


def parse_timestamp_summary(text: str, default_group_title: str = DEFAULT_GROUP_TITLE) -> ParseResult:
    """Convenience wrapper: ``TimestampParser(default_group_title).parse(text)``."""
    return TimestampParser(default_group_title).parse(text)
