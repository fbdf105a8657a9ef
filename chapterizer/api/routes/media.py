"""Media intake endpoints: file uploads and playlist downloads."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from chapterizer.acquisition.downloader import MediaAcquirer, is_playlist_url, save_upload
from chapterizer.api.deps import get_acquirer, get_app_settings
from chapterizer.api.models import (
    PlaylistItemOut,
    PlaylistRequest,
    PlaylistResponse,
    UploadResponse,
)
from chapterizer.config import Settings

router = APIRouter()

# 2 GB upload limit
MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024

UPLOAD_KINDS = {"videos", "audio"}


@router.post("/api/uploads", response_model=UploadResponse)
async def upload(
    file: Annotated[UploadFile, File(...)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    owner_id: Annotated[str, Form(pattern=r"^[A-Za-z0-9_-]+$")] = "anonymous",
    kind: Annotated[str, Form()] = "videos",
) -> UploadResponse:
    """Save an uploaded video or audio file under ``uploads/<kind>/<owner_id>/``."""
    if kind not in UPLOAD_KINDS:
        raise HTTPException(status_code=422, detail=f"kind must be one of {sorted(UPLOAD_KINDS)}")
    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    saved = await asyncio.to_thread(
        save_upload, Path(settings.media_root), raw, file.filename or "", owner_id, kind
    )
    return UploadResponse(
        path=str(saved.abs_path),
        public_url=saved.rel_path,
        filename=saved.file_name,
    )


@router.post("/api/playlists", response_model=PlaylistResponse)
async def download_playlist(
    body: PlaylistRequest,
    acquirer: Annotated[MediaAcquirer, Depends(get_acquirer)],
) -> PlaylistResponse:
    """Download every entry of a playlist; per-entry failures are listed, not raised."""
    if not is_playlist_url(body.url):
        raise HTTPException(status_code=400, detail="URL is not a playlist")
    result = await asyncio.to_thread(acquirer.download_playlist, body.url)
    playlist, downloads = result.unwrap()
    by_id = {d.id: d for d in downloads}
    return PlaylistResponse(
        id=playlist.id,
        title=playlist.title,
        items=[
            PlaylistItemOut(
                id=entry.id,
                title=entry.title,
                url=entry.url,
                public_url=by_id[entry.id].public_url if entry.id in by_id else None,
                error=by_id[entry.id].error if entry.id in by_id else None,
            )
            for entry in playlist.entries
        ],
    )
