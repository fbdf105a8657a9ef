"""Timestamp token parsing and formatting."""

from __future__ import annotations

import re

# [MM:SS], MM:SS, [H:MM:SS], H:MM:SS with optional fractional seconds
TIME_TOKEN_RE = re.compile(r"(\[)?\b\d{1,2}:(?:\d{1,2}:)?\d{2}(?:\.\d+)?(\])?")

_COMPONENT_RE = re.compile(r"\d+(?:\.\d+)?")


def parse_timestamp(token: str) -> int | None:
    """Convert ``H:MM:SS``, ``HH:MM:SS`` or ``MM:SS`` (optionally bracketed,
    optionally with fractional seconds) to whole seconds.

    Returns ``None`` for fewer than two or more than three components, or
    for any non-numeric component. Fractions are discarded, not rounded.
    """
    clean = re.sub(r"[\[\]()]", "", token).strip()
    parts = [p.strip() for p in clean.split(":")]
    if len(parts) < 2 or len(parts) > 3:
        return None
    if not all(_COMPONENT_RE.fullmatch(p) for p in parts):
        return None
    nums = [int(p.split(".")[0]) for p in parts]
    if len(nums) == 3:
        hours, minutes, seconds = nums
    else:
        hours = 0
        minutes, seconds = nums
    return hours * 3600 + minutes * 60 + seconds


def format_timestamp(seconds: int) -> str:
    """Render seconds as ``M:SS`` below one hour, ``H:MM:SS`` otherwise."""
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def normalize_timestamp(token: str) -> str | None:
    """Canonical form of a token (``"00:01:05.250"`` -> ``"1:05"``)."""
    seconds = parse_timestamp(token)
    if seconds is None:
        return None
    return format_timestamp(seconds)
