"""Gemini access through the ``google.generativeai`` SDK: file upload plus generate_content.

The SDK module is injected (``sdk=genai`` by default) so tests can pass a
``MagicMock`` in its place.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from chapterizer.acquisition.models import AudioTrack
from chapterizer.analysis.prompts import (
    CUSTOM_QUERY_PROMPT,
    TRANSCRIPTION_PROMPT,
    segmentation_prompt,
)
from chapterizer.config import Settings
from chapterizer.errors import (
    AnalysisError,
    CancelledError,
    ConfigurationError,
    Result,
)
from chapterizer.pipeline_config import AnalysisMode

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/flac"
FILE_POLL_SECONDS = 2.0

DEFAULT_GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.2,
    "top_p": 0.95,
    "top_k": 40,
    "max_output_tokens": 8192,
}


@dataclass
class AnalysisText:
    """Raw model output for one analysis call."""

    text: str
    mode: AnalysisMode
    file_uri: str | None = None


def _state_name(file: Any) -> str:
    state = getattr(file, "state", None)
    return str(getattr(state, "name", state) or "")


def _block_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    name = getattr(reason, "name", reason)
    if not name or name == "BLOCK_REASON_UNSPECIFIED":
        return None
    return str(name)


class GeminiClient:
    """Thin wrapper over the two Gemini calls the pipeline uses."""

    def __init__(
        self,
        settings: Settings,
        sdk: Any = genai,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.sdk = sdk
        self.sleep = sleep

    def missing_key_error(self) -> ConfigurationError | None:
        if not self.settings.gemini_api_key:
            return ConfigurationError("GEMINI_API_KEY is not configured")
        return None

    def configure(self) -> None:
        self.sdk.configure(api_key=self.settings.gemini_api_key)  # type: ignore[attr-defined]

    def upload_file(self, path: Path, mime_type: str = AUDIO_MIME_TYPE) -> Result[Any]:
        """Upload *path* and wait until Gemini reports the file ACTIVE.

        The SDK streams the file from disk. A file still PROCESSING after
        ``gemini_timeout_seconds`` is reported as an analysis failure.
        """
        path = Path(path)
        max_polls = max(1, int(self.settings.gemini_timeout_seconds / FILE_POLL_SECONDS))
        try:
            file = self.sdk.upload_file(
                path=str(path), mime_type=mime_type, display_name=path.name
            )
            polls = 0
            while _state_name(file) == "PROCESSING":
                if polls >= max_polls:
                    return Result.failure(
                        AnalysisError(f"Gemini is still processing {path.name}; giving up")
                    )
                self.sleep(FILE_POLL_SECONDS)
                polls += 1
                file = self.sdk.get_file(file.name)
        except google_exceptions.GoogleAPIError as exc:
            return Result.failure(AnalysisError(f"Gemini file upload failed: {exc}"))
        except OSError as exc:
            return Result.failure(AnalysisError(f"Could not read {path}: {exc}"))

        if _state_name(file) == "FAILED":
            return Result.failure(AnalysisError(f"Gemini could not process {path.name}"))
        if not getattr(file, "uri", None):
            return Result.failure(AnalysisError("Gemini upload returned no file uri"))

        logger.info("Uploaded %s to Gemini as %s", path.name, file.uri)
        return Result.success(file)

    def send_generate(
        self,
        parts: list[Any],
        generation_config: dict[str, Any] | None = None,
    ) -> Any:
        """Call generate_content and return the SDK response.

        Raises ``google.api_core.exceptions.GoogleAPIError`` on API failures;
        the caller decides what to do with them.
        """
        model = self.sdk.GenerativeModel(
            self.settings.gemini_model,
            generation_config=generation_config,
        )
        return model.generate_content(
            parts,
            request_options={"timeout": self.settings.gemini_timeout_seconds},
        )

    def generate(
        self,
        parts: list[Any],
        generation_config: dict[str, Any] | None = None,
    ) -> Result[str]:
        """Run generate_content and return the response text."""
        try:
            response = self.send_generate(parts, generation_config)
        except google_exceptions.GoogleAPIError as exc:
            return Result.failure(AnalysisError(f"Gemini content generation failed: {exc}"))
        return self.read_text(response)

    @staticmethod
    def read_text(response: Any) -> Result[str]:
        # .text raises ValueError when the response has no text part
        try:
            text = response.text
        except ValueError:
            text = None
        if not text or not text.strip():
            reason = _block_reason(response)
            suffix = f" (blocked: {reason})" if reason else ""
            return Result.failure(AnalysisError(f"Gemini returned no text{suffix}"))
        return Result.success(text)


class TopicAnalysisClient(GeminiClient):
    """Send an audio track to Gemini and get back a timestamped summary or transcript."""

    def analyze(
        self,
        audio: AudioTrack,
        mode: AnalysisMode = AnalysisMode.SEGMENTATION,
        custom_query: str | None = None,
        duration_seconds: int | None = None,
        cancel: threading.Event | None = None,
    ) -> Result[AnalysisText]:
        missing = self.missing_key_error()
        if missing is not None:
            return Result.failure(missing)
        self.configure()

        uploaded = self.upload_file(audio.local_path, AUDIO_MIME_TYPE)
        if not uploaded.ok:
            return Result.failure(uploaded.error)  # type: ignore[arg-type]
        if cancel is not None and cancel.is_set():
            return Result.failure(CancelledError("Analysis cancelled"))

        file = uploaded.unwrap()
        prompt = self.prompt_for(mode, custom_query, duration_seconds)
        logger.info("Requesting %s from %s", mode.value, self.settings.gemini_model)
        generated = self.generate([file, prompt], DEFAULT_GENERATION_CONFIG)
        if not generated.ok:
            logger.error("Gemini analysis failed: %s", generated.error)
            return Result.failure(generated.error)  # type: ignore[arg-type]
        if cancel is not None and cancel.is_set():
            return Result.failure(CancelledError("Analysis cancelled"))

        return Result.success(AnalysisText(text=generated.unwrap(), mode=mode, file_uri=file.uri))

    @staticmethod
    def prompt_for(
        mode: AnalysisMode,
        custom_query: str | None = None,
        duration_seconds: int | None = None,
    ) -> str:
        """Transcription mode ignores any custom query."""
        if mode is AnalysisMode.TRANSCRIPTION:
            return TRANSCRIPTION_PROMPT
        if custom_query and custom_query.strip():
            return CUSTOM_QUERY_PROMPT.format(query=custom_query.strip())
        return segmentation_prompt(duration_seconds)
