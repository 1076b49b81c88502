"""API dependencies: per-request persistence adapter and storage."""
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status

from app.db.adapters.base import DbAdapter
from app.db.adapters.factory import get_adapter
from app.schemas.task import TaskRecord
from app.services.storage_service import LocalStorage, get_storage


def get_db_adapter(
    data_source: str | None = Query(None, alias="dataSource", description="supabase | local"),
) -> DbAdapter:
    try:
        return get_adapter(data_source)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def get_local_storage() -> LocalStorage:
    return get_storage()


async def get_task_or_404(
    album_id: UUID,
    db: DbAdapter = Depends(get_db_adapter),
) -> TaskRecord:
    task = await db.get_task(album_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    return task
