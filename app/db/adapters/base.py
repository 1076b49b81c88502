"""Persistence adapter interface for tasks and their images.

Two implementations exist: LocalPgAdapter (SQLAlchemy on a local Postgres) and
SupabaseAdapter (supabase-py). Routes pick one per request via get_adapter().
"""
from typing import Any, Protocol
from uuid import UUID

from app.schemas.image import ImageRecord
from app.schemas.task import TaskRecord, TaskStatus


class DbAdapterError(Exception):
    """Raised when the underlying store rejects or fails an operation."""


class DbAdapter(Protocol):
    name: str

    async def create_task(
        self, original_filename: str, album_name: str, source_path: str | None = None
    ) -> TaskRecord:
        ...

    async def get_task(self, task_id: str | UUID) -> TaskRecord | None:
        """Return the task, or None when it does not exist (or the id is malformed)."""
        ...

    async def list_tasks(self, skip: int = 0, limit: int = 20) -> list[TaskRecord]:
        """Newest first."""
        ...

    async def count_tasks(self) -> int:
        ...

    async def update_task_progress(self, task_id: str | UUID, progress: int, status: TaskStatus) -> None:
        """Write progress without ever lowering the stored value. Status is always applied."""
        ...

    async def update_task_status(
        self,
        task_id: str | UUID,
        status: TaskStatus,
        total_frames: int | None = None,
        **metadata: Any,
    ) -> None:
        """Set status and, when given, total_frames plus any of resolution/fps/duration/error_message/progress."""
        ...

    async def reset_failed_task(self, task_id: str | UUID) -> bool:
        """Atomically move a failed task back to pending with progress 0. False when it was not failed."""
        ...

    async def create_image(
        self,
        task_id: str | UUID,
        frame_number: int,
        filename: str,
        file_path: str,
        thumbnail_path: str | None = None,
        file_size: int | None = None,
    ) -> ImageRecord:
        ...

    async def get_images_by_task(
        self,
        task_id: str | UUID,
        skip: int = 0,
        limit: int | None = None,
        favorites_only: bool = False,
    ) -> list[ImageRecord]:
        """Ordered by frame_number."""
        ...

    async def count_images(self, task_id: str | UUID, favorites_only: bool = False) -> int:
        ...

    async def get_images_by_ids(self, task_id: str | UUID, image_ids: list[UUID]) -> list[ImageRecord]:
        ...

    async def set_favorite(self, task_id: str | UUID, image_ids: list[UUID], is_favorite: bool) -> int:
        """Returns the number of images updated."""
        ...

    async def delete_images(self, task_id: str | UUID) -> int:
        """Remove every image row of a task (used before reprocessing)."""
        ...

    async def delete_task(self, task_id: str | UUID) -> bool:
        ...

    async def ping(self) -> None:
        """Raise DbAdapterError when the store is unreachable."""
        ...

    async def close(self) -> None:
        ...


TASK_METADATA_FIELDS = {"resolution", "fps", "duration", "error_message", "progress"}


def check_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    unknown = set(metadata) - TASK_METADATA_FIELDS
    if unknown:
        raise ValueError(f"Unknown task fields: {sorted(unknown)}")
    return metadata


def parse_uuid(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
