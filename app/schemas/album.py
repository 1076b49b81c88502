"""Pydantic schemas for album views."""
from datetime import datetime
from uuid import UUID

from app.schemas.image import ImageResponse
from app.schemas.task import CamelModel, TaskStatus


class AlbumSummary(CamelModel):
    album_id: UUID
    name: str
    original_filename: str
    status: TaskStatus
    progress: int
    total_frames: int
    resolution: str | None = None
    created_at: datetime


class AlbumListResponse(CamelModel):
    items: list[AlbumSummary]
    total: int
    skip: int
    limit: int


class AlbumResponse(CamelModel):
    album_id: UUID
    name: str
    status: TaskStatus
    total_frames: int
    resolution: str | None = None
    fps: float | None = None
    duration: float | None = None
    created_at: datetime
    total_images: int
    skip: int
    limit: int
    images: list[ImageResponse]
