"""Video upload: store the file, create the task, start processing."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from app.api.deps import get_db_adapter, get_local_storage
from app.db.adapters.base import DbAdapter
from app.schemas.task import UploadResponse
from app.services.storage_service import LocalStorage, UploadTooLargeError
from app.workers.video_processing import enqueue_video_processing

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])

VIDEO_TYPES = {"video/mp4"}


def _is_mp4(file: UploadFile) -> bool:
    return (file.content_type or "") in VIDEO_TYPES or Path(file.filename or "").suffix.lower() == ".mp4"


def _decode_filename(name: str) -> str:
    """Recover UTF-8 names some clients send as latin-1 bytes."""
    try:
        return name.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return name


@router.post("/upload", response_model=UploadResponse)
async def upload_video(
    file: UploadFile = File(...),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    """Upload one MP4. Returns the task id immediately; poll /progress/{taskId}."""
    if not _is_mp4(file):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only MP4 files are allowed")

    try:
        path = await storage.save_upload(file, ".mp4")
    except UploadTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))

    original_filename = _decode_filename(file.filename or path.name)
    album_name = Path(original_filename).stem or path.stem
    try:
        task = await db.create_task(original_filename, album_name, source_path=str(path))
    except Exception:
        # No task row points at the file
        storage.delete_upload(path)
        raise

    try:
        enqueue_video_processing(str(task.id), path, db.name)
    except Exception as e:
        logger.exception("Failed to start processing for task %s", task.id)
        await db.update_task_status(task.id, "failed", error_message=f"Could not start processing: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Processing queue unavailable")

    return UploadResponse(task_id=task.id)
