"""Album listing, gallery pages, favourites, retry and delete."""
import logging
from pathlib import Path
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_db_adapter, get_local_storage, get_task_or_404
from app.db.adapters.base import DbAdapter
from app.schemas.album import AlbumListResponse, AlbumResponse, AlbumSummary
from app.schemas.download import ZipDownloadRequest
from app.schemas.image import BatchFavoriteUpdate, FavoriteUpdate, ImageResponse
from app.schemas.task import TaskRecord
from app.services.album_service import collect_download_entries, get_album, image_to_response, task_to_summary
from app.services.storage_service import LocalStorage, iter_file
from app.workers.video_processing import enqueue_video_processing

logger = logging.getLogger(__name__)

router = APIRouter(tags=["albums"])


@router.get("/albums", response_model=AlbumListResponse)
async def list_albums(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: DbAdapter = Depends(get_db_adapter),
):
    tasks = await db.list_tasks(skip=skip, limit=limit)
    total = await db.count_tasks()
    return AlbumListResponse(items=[task_to_summary(t) for t in tasks], total=total, skip=skip, limit=limit)


@router.get("/album/{album_id}", response_model=AlbumResponse)
async def get_album_detail(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    favorites_only: bool = Query(False, alias="favoritesOnly"),
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    return await get_album(db, task, storage, skip=skip, limit=limit, favorites_only=favorites_only)


@router.patch("/album/{album_id}/images/{image_id}", response_model=ImageResponse)
async def update_image_favorite(
    image_id: UUID,
    data: FavoriteUpdate,
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    updated = await db.set_favorite(task.id, [image_id], data.is_favorite)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    images = await db.get_images_by_ids(task.id, [image_id])
    return image_to_response(images[0], storage)


@router.put("/album/{album_id}/favorites")
async def batch_update_favorites(
    data: BatchFavoriteUpdate,
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
):
    updated = await db.set_favorite(task.id, data.image_ids, data.is_favorite)
    return {"updated": updated}


@router.post("/album/{album_id}/download")
async def download_album_zip(
    data: ZipDownloadRequest,
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    """Stream the selected frames (default: all) as a ZIP archive."""
    entries = await collect_download_entries(db, task.id, data, storage)
    if not entries:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No files to download")
    archive = await run_in_threadpool(storage.build_zip, entries)
    filename = f"{task.album_name or task.id}.zip".replace('"', "")
    return StreamingResponse(
        iter_file(archive),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
        background=BackgroundTask(archive.close),
    )


@router.post("/album/{album_id}/retry", response_model=AlbumSummary)
async def retry_album(
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    if task.status != "failed":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only failed albums can be retried")
    if not task.source_path or not Path(task.source_path).is_file():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Source video is no longer available")

    # Only the request that flips failed -> pending dispatches
    if not await db.reset_failed_task(task.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only failed albums can be retried")
    await db.delete_images(task.id)
    storage.delete_album(str(task.id))
    enqueue_video_processing(str(task.id), task.source_path, db.name)
    logger.info("Retrying task %s", task.id)
    refreshed = await db.get_task(task.id)
    return task_to_summary(refreshed or task)


@router.delete("/album/{album_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_album(
    task: TaskRecord = Depends(get_task_or_404),
    db: DbAdapter = Depends(get_db_adapter),
    storage: LocalStorage = Depends(get_local_storage),
):
    if task.status == "processing":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Album is still processing")
    await db.delete_task(task.id)
    storage.delete_album(str(task.id))
    if task.source_path:
        storage.delete_upload(task.source_path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
