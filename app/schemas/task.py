"""Pydantic schemas for Task (album processing job)."""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

TaskStatus = Literal["pending", "processing", "completed", "failed"]
DataSource = Literal["supabase", "local"]


class TaskRecord(BaseModel):
    """Row shape shared by every persistence adapter."""

    id: UUID
    original_filename: str
    album_name: str
    source_path: str | None = None
    total_frames: int = 0
    resolution: str | None = None
    fps: float | None = None
    duration: float | None = None
    status: TaskStatus = "pending"
    progress: int = 0
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


class UploadResponse(CamelModel):
    task_id: UUID
    status: str = "uploaded"
    message: str = "File uploaded successfully"


class ProgressResponse(CamelModel):
    task_id: UUID
    status: TaskStatus
    progress: int
    current_frame: int
    total_frames: int
    estimated_time: int  # seconds
    error_message: str | None = None
