"""Task progress polling."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.deps import get_db_adapter
from app.db.adapters.base import DbAdapter
from app.schemas.task import ProgressResponse
from app.services.album_service import task_to_progress

router = APIRouter(tags=["progress"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("/progress/{task_id}", response_model=ProgressResponse)
async def get_progress(
    task_id: UUID,
    response: Response,
    db: DbAdapter = Depends(get_db_adapter),
):
    task = await db.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    response.headers.update(NO_CACHE_HEADERS)
    return task_to_progress(task)
