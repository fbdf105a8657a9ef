"""Shared fixtures: isolated settings and a scripted process runner."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.config import Settings
from tests.helpers import ok


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        gemini_api_key="test-key",
        youtube_api_key="",
        media_root=str(tmp_path / "public"),
        ytdlp_cookies_file="",
        ytdlp_cookies_from_browser="",
    )


@pytest.fixture
def runner() -> MagicMock:
    """A ``ProcessRunner`` stand-in; set ``side_effect`` or ``return_value`` per test."""
    mock = MagicMock(spec=ProcessRunner)
    mock.run.return_value = ok()
    return mock
