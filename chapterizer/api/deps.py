"""Per-process component wiring for the API.

Routes receive these through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

import httpx
from supabase import Client

from chapterizer.acquisition.clips import ClipGenerator
from chapterizer.acquisition.downloader import MediaAcquirer
from chapterizer.acquisition.runner import ProcessRunner
from chapterizer.acquisition.youtube import YouTubeClient
from chapterizer.analysis.formatting import PageFormatter
from chapterizer.analysis.structured import StructuredSegmentClient
from chapterizer.config import Settings, get_settings
from chapterizer.pipeline import SegmentationPipeline
from chapterizer.storage import get_supabase_client


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_http_client() -> httpx.Client:
    return httpx.Client(timeout=httpx.Timeout(30.0, connect=10.0), follow_redirects=True)


@lru_cache(maxsize=1)
def get_runner() -> ProcessRunner:
    return ProcessRunner()


@lru_cache(maxsize=1)
def get_acquirer() -> MediaAcquirer:
    """One acquirer for every request, including the ones behind the pipeline."""
    return MediaAcquirer(get_runner(), get_settings())


@lru_cache(maxsize=1)
def get_store() -> Client | None:
    """Supabase client, or ``None`` when no project is configured."""
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        return None
    return get_supabase_client(settings)


def get_pipeline() -> SegmentationPipeline:
    return SegmentationPipeline.from_settings(get_settings(), get_runner(), get_acquirer())


def get_clip_generator() -> ClipGenerator:
    return ClipGenerator(get_runner(), get_settings())


def get_structured_client() -> StructuredSegmentClient:
    return StructuredSegmentClient(get_settings())


def get_youtube_client() -> YouTubeClient:
    return YouTubeClient(get_http_client(), get_settings())


def get_page_formatter() -> PageFormatter:
    return PageFormatter(get_settings())
