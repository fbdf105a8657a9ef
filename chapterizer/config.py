from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Keys, tool paths, timeouts and the media layout.

    Read from the environment first, then `.env` in the working directory.
    """

    # Credentials
    gemini_api_key: str = ""
    youtube_api_key: str = ""  # optional; description chapters are empty without it

    # Gemini
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_timeout_seconds: float = 300.0

    # External tools
    ytdlp_path: str = "yt-dlp"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ytdlp_cookies_file: str = ""
    ytdlp_cookies_from_browser: str = ""
    ytdlp_youtube_client: str = "web"  # e.g. web, android, tv
    ytdlp_timeout_ms: int = 90_000
    metadata_timeout_ms: int = 15_000
    ffmpeg_timeout_ms: int = 600_000
    transcript_langs: str = "en,en-US,en-GB"

    # Local media layout (public/ is served as-is by the web tier)
    media_root: str = "public"

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def preferred_transcript_langs(self) -> list[str]:
        return [lang.strip() for lang in self.transcript_langs.split(",") if lang.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings; an unreadable `.env` is skipped."""
    try:
        return Settings()
    except Exception:
        return Settings(_env_file=None)  # type: ignore[call-arg]

