"""Pydantic schemas for Image (album frame)."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.task import CamelModel


class ImageRecord(BaseModel):
    id: UUID
    task_id: UUID
    frame_number: int
    filename: str
    file_path: str
    thumbnail_path: str | None = None
    file_size: int | None = None
    is_favorite: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class ImageResponse(CamelModel):
    id: UUID
    frame_number: int
    filename: str
    file_path: str
    image_url: str
    thumbnail_url: str | None = None
    file_size: int | None = None
    is_favorite: bool = False
    created_at: datetime


class FavoriteUpdate(CamelModel):
    is_favorite: bool


class BatchFavoriteUpdate(CamelModel):
    image_ids: list[UUID] = Field(..., min_length=1, max_length=1000)
    is_favorite: bool
