"""Shared fixtures: isolated storage dirs and an in-memory persistence adapter."""
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

# Settings are read at import time; keep test runs away from real directories and services
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="frame-catcher-tests-"))
os.environ.setdefault("UPLOAD_DIR", str(_TMP_ROOT / "uploads"))
os.environ.setdefault("ALBUMS_DIR", str(_TMP_ROOT / "albums"))
os.environ.setdefault("DEFAULT_DATA_SOURCE", "local")
os.environ.setdefault("PROCESSING_MODE", "celery")

from app.db.adapters.base import check_metadata, parse_uuid  # noqa: E402
from app.schemas.image import ImageRecord  # noqa: E402
from app.schemas.task import TaskRecord  # noqa: E402
from app.services.storage_service import LocalStorage  # noqa: E402


class InMemoryAdapter:
    """DbAdapter double with the same monotonic progress rule as the real stores."""

    name = "memory"

    def __init__(self):
        self.tasks: dict[uuid.UUID, TaskRecord] = {}
        self.images: dict[uuid.UUID, ImageRecord] = {}
        self.progress_writes: list[int] = []
        self.status_writes: list[str] = []

    async def create_task(self, original_filename: str, album_name: str, source_path: str | None = None):
        task = TaskRecord(
            id=uuid.uuid4(),
            original_filename=original_filename,
            album_name=album_name,
            source_path=source_path,
            created_at=datetime.utcnow(),
        )
        self.tasks[task.id] = task
        return task

    async def get_task(self, task_id):
        tid = parse_uuid(task_id)
        task = self.tasks.get(tid) if tid else None
        return task.model_copy() if task else None

    async def list_tasks(self, skip=0, limit=20):
        ordered = sorted(self.tasks.values(), key=lambda t: t.created_at, reverse=True)
        return ordered[skip:skip + limit]

    async def count_tasks(self):
        return len(self.tasks)

    async def update_task_progress(self, task_id, progress, status):
        task = self.tasks[parse_uuid(task_id)]
        self.progress_writes.append(progress)
        self.tasks[task.id] = task.model_copy(update={"progress": max(task.progress, progress), "status": status})

    async def update_task_status(self, task_id, status, total_frames=None, **metadata: Any):
        task = self.tasks[parse_uuid(task_id)]
        update = {"status": status, **check_metadata(metadata)}
        if total_frames is not None:
            update["total_frames"] = total_frames
        self.status_writes.append(status)
        self.tasks[task.id] = task.model_copy(update=update)

    async def reset_failed_task(self, task_id):
        tid = parse_uuid(task_id)
        task = self.tasks.get(tid) if tid else None
        if task is None or task.status != "failed":
            return False
        self.tasks[tid] = task.model_copy(update={"status": "pending", "progress": 0, "error_message": None})
        return True

    async def create_image(self, task_id, frame_number, filename, file_path, thumbnail_path=None, file_size=None):
        image = ImageRecord(
            id=uuid.uuid4(),
            task_id=parse_uuid(task_id),
            frame_number=frame_number,
            filename=filename,
            file_path=file_path,
            thumbnail_path=thumbnail_path,
            file_size=file_size,
            created_at=datetime.utcnow(),
        )
        self.images[image.id] = image
        return image

    def _images(self, task_id, favorites_only=False):
        tid = parse_uuid(task_id)
        images = [i for i in self.images.values() if i.task_id == tid]
        if favorites_only:
            images = [i for i in images if i.is_favorite]
        return sorted(images, key=lambda i: i.frame_number)

    async def get_images_by_task(self, task_id, skip=0, limit=None, favorites_only=False):
        images = self._images(task_id, favorites_only)[skip:]
        return images if limit is None else images[:limit]

    async def count_images(self, task_id, favorites_only=False):
        return len(self._images(task_id, favorites_only))

    async def get_images_by_ids(self, task_id, image_ids):
        wanted = set(image_ids)
        return [i for i in self._images(task_id) if i.id in wanted]

    async def set_favorite(self, task_id, image_ids, is_favorite):
        updated = 0
        for image in await self.get_images_by_ids(task_id, image_ids):
            self.images[image.id] = image.model_copy(update={"is_favorite": is_favorite})
            updated += 1
        return updated

    async def delete_images(self, task_id):
        doomed = [i.id for i in self._images(task_id)]
        for image_id in doomed:
            del self.images[image_id]
        return len(doomed)

    async def delete_task(self, task_id):
        tid = parse_uuid(task_id)
        if tid not in self.tasks:
            return False
        await self.delete_images(tid)
        del self.tasks[tid]
        return True

    async def ping(self):
        return None

    async def close(self):
        return None


@pytest.fixture
def memory_db() -> InMemoryAdapter:
    return InMemoryAdapter()


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(upload_dir=tmp_path / "uploads", albums_dir=tmp_path / "albums")
