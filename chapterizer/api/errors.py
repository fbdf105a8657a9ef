"""Map pipeline errors to JSON ``{"error": ...}`` responses."""

from __future__ import annotations

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chapterizer.errors import (
    AcquisitionError,
    AnalysisError,
    CancelledError,
    ConfigurationError,
    PipelineError,
    StorageError,
    TranscodeError,
)

# 499: client closed request (nginx convention)
STATUS_BY_ERROR: dict[type[PipelineError], int] = {
    ConfigurationError: 400,
    AcquisitionError: 400,
    TranscodeError: 502,
    AnalysisError: 502,
    StorageError: 502,
    CancelledError: 499,
}


def status_for(error: PipelineError) -> int:
    for cls in type(error).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]  # type: ignore[index]
    return 500


def error_response(error: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=status_for(error), content=error.to_dict())


async def pipeline_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, PipelineError)
    return error_response(exc)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    messages = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"error": "; ".join(messages) or "invalid request", "kind": "validation_error"},
    )


async def http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, StarletteHTTPException)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "kind": "http_error"},
        headers=getattr(exc, "headers", None),
    )
