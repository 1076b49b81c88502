"""Pydantic schemas for batch download."""
from typing import Literal
from uuid import UUID

from pydantic import Field

from app.schemas.task import CamelModel


class ZipDownloadRequest(CamelModel):
    image_ids: list[UUID] | None = None  # None means every image of the album
    favorites_only: bool = False
    include_thumbnails: bool = False


class LocalSaveFile(CamelModel):
    name: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)  # relative to ALBUMS_DIR


class LocalSaveRequest(CamelModel):
    files: list[LocalSaveFile]
    target_dir: str = Field(..., min_length=1)


class LocalSaveResult(CamelModel):
    name: str
    status: Literal["success", "failed"]
    error: str | None = None


class LocalSaveResponse(CamelModel):
    results: list[LocalSaveResult]
