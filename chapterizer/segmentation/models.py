"""Data models for timestamp parsing and chapter building."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ParsedEntry:
    """One classified line of model output.

    ``level`` 0 is a top-level topic, 1 a sub-item of the nearest topic.
    ``start_seconds`` is ``None`` only for topic headings that carry no
    timestamp of their own.
    """

    level: int
    start_seconds: int | None
    title: str
    description: str | None = None
    end_seconds: int | None = None
    is_heading: bool = False


@dataclass
class ParsedItem:
    """A sub-item inside a group; ``end_seconds`` is set only when explicit."""

    title: str
    start_seconds: int
    end_seconds: int | None = None
    description: str | None = None


@dataclass
class ParsedGroup:
    """A top-level topic and its ordered sub-items.

    ``end_seconds`` comes from a ranged heading and bounds the topic only
    when it has no sub-items.
    """

    title: str
    description: str | None = None
    first_start_seconds: int | None = None
    end_seconds: int | None = None
    items: list[ParsedItem] = field(default_factory=list)
    from_heading: bool = False


@dataclass
class ParseResult:
    groups: list[ParsedGroup] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.groups


@dataclass
class Segment:
    """A final, time-bounded chapter segment ready for persistence.

    ``duration_seconds`` is ``None`` when ``end_seconds == start_seconds``;
    such segments are kept and rejected later by clip generation.
    """

    title: str
    start_seconds: int
    end_seconds: int
    order_index: int
    description: str | None = None
    group_index: int = 0
    group_title: str = ""
    duration_seconds: int | None = None


@dataclass
class Chapter:
    """A parent group of segments, in display order."""

    title: str
    order_index: int
    segments: list[Segment] = field(default_factory=list)
