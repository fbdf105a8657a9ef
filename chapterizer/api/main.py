from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from chapterizer.api.errors import (
    http_error_handler,
    pipeline_error_handler,
    validation_error_handler,
)
from chapterizer.api.routes.documents import router as documents_router
from chapterizer.api.routes.media import router as media_router
from chapterizer.api.routes.segment import router as segment_router
from chapterizer.api.routes.shorts import router as shorts_router
from chapterizer.config import get_settings
from chapterizer.errors import PipelineError

app = FastAPI(
    title="Chapterizer API",
    description="Split long-form video into timestamped chapters and clips",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PipelineError, pipeline_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

app.include_router(segment_router)
app.include_router(shorts_router)
app.include_router(media_router)
app.include_router(documents_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


settings = get_settings()
for prefix in ("downloads", "uploads"):
    app.mount(
        f"/{prefix}",
        StaticFiles(directory=Path(settings.media_root) / prefix, check_dir=False),
        name=prefix,
    )


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
