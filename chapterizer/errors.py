"""Error taxonomy and the Result type returned by every pipeline stage.

Stages never raise for expected failures (missing configuration, network
errors, tool exits, malformed model output). They return a :class:`Result`
carrying either the value or one of the :class:`PipelineError` subclasses
below; callers decide whether and how to retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class PipelineError(Exception):
    """Base class for typed pipeline failures."""

    kind = "pipeline_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind}


class ConfigurationError(PipelineError):
    """Missing credentials or binaries. Never retried."""

    kind = "configuration_error"


class AcquisitionError(PipelineError):
    """Every download tier failed, or a local source could not be used."""

    kind = "acquisition_error"


class TranscodeError(PipelineError):
    """The transcoder exited non-zero."""

    kind = "transcode_error"


class AnalysisError(PipelineError):
    """Upload or generation failed, or returned no usable content."""

    kind = "analysis_error"


class StorageError(PipelineError):
    """A Supabase read or write failed."""

    kind = "storage_error"


class CancelledError(PipelineError):
    """The invocation's cancellation token was set."""

    kind = "cancelled"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success-with-value or failure-with-reason."""

    value: T | None = None
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: PipelineError) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
