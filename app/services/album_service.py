"""Album views built from task/image records."""
import math
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

from app.db.adapters.base import DbAdapter
from app.schemas.album import AlbumResponse, AlbumSummary
from app.schemas.download import ZipDownloadRequest
from app.schemas.image import ImageRecord, ImageResponse
from app.schemas.task import ProgressResponse, TaskRecord
from app.services.storage_service import LocalStorage


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def estimate_remaining_seconds(task: TaskRecord, now: datetime | None = None) -> int:
    """Linear estimate from elapsed time and progress; 0 unless processing."""
    if task.status != "processing" or task.progress <= 0 or task.total_frames <= 0:
        return 0
    now = now or datetime.now(timezone.utc)
    elapsed = (_as_utc(now) - _as_utc(task.created_at)).total_seconds()
    estimated_total = elapsed / (task.progress / 100)
    return round(max(0.0, estimated_total - elapsed))


def task_to_progress(task: TaskRecord, now: datetime | None = None) -> ProgressResponse:
    return ProgressResponse(
        task_id=task.id,
        status=task.status,
        progress=task.progress,
        current_frame=math.floor(task.progress / 100 * task.total_frames),
        total_frames=task.total_frames,
        estimated_time=estimate_remaining_seconds(task, now),
        error_message=task.error_message,
    )


def task_to_summary(task: TaskRecord) -> AlbumSummary:
    return AlbumSummary(
        album_id=task.id,
        name=task.album_name,
        original_filename=task.original_filename,
        status=task.status,
        progress=task.progress,
        total_frames=task.total_frames,
        resolution=task.resolution,
        created_at=task.created_at,
    )


def image_to_response(image: ImageRecord, storage: LocalStorage) -> ImageResponse:
    return ImageResponse(
        id=image.id,
        frame_number=image.frame_number,
        filename=image.filename,
        file_path=image.file_path,
        image_url=storage.public_url(image.file_path),
        thumbnail_url=storage.public_url(image.thumbnail_path),
        file_size=image.file_size,
        is_favorite=image.is_favorite,
        created_at=image.created_at,
    )


async def get_album(
    db: DbAdapter,
    task: TaskRecord,
    storage: LocalStorage,
    *,
    skip: int = 0,
    limit: int = 50,
    favorites_only: bool = False,
) -> AlbumResponse:
    images = await db.get_images_by_task(task.id, skip=skip, limit=limit, favorites_only=favorites_only)
    total_images = await db.count_images(task.id, favorites_only=favorites_only)
    return AlbumResponse(
        album_id=task.id,
        name=task.album_name,
        status=task.status,
        total_frames=task.total_frames,
        resolution=task.resolution,
        fps=task.fps,
        duration=task.duration,
        created_at=task.created_at,
        total_images=total_images,
        skip=skip,
        limit=limit,
        images=[image_to_response(i, storage) for i in images],
    )


async def collect_download_entries(
    db: DbAdapter,
    task_id: UUID,
    request: ZipDownloadRequest,
    storage: LocalStorage,
) -> list[tuple[str, Path]]:
    """(archive name, file) pairs for a batch download; files missing on disk are skipped."""
    if request.image_ids:
        images = await db.get_images_by_ids(task_id, request.image_ids)
        if request.favorites_only:
            images = [i for i in images if i.is_favorite]
    else:
        images = await db.get_images_by_task(task_id, favorites_only=request.favorites_only)

    entries: list[tuple[str, Path]] = []
    for image in images:
        path = storage.resolve(image.file_path)
        if path and path.is_file():
            entries.append((image.filename, path))
        if request.include_thumbnails and image.thumbnail_path:
            thumb = storage.resolve(image.thumbnail_path)
            if thumb and thumb.is_file():
                entries.append((f"thumbnails/{thumb.name}", thumb))
    return entries
