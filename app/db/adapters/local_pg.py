"""Local Postgres adapter (SQLAlchemy async ORM over asyncpg)."""
import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, delete, func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from app.db.adapters.base import DbAdapterError, check_metadata, parse_uuid
from app.db.session import async_session_maker, engine as default_engine
from app.models import Image, Task
from app.schemas.image import ImageRecord
from app.schemas.task import TaskRecord, TaskStatus

logger = logging.getLogger(__name__)


class LocalPgAdapter:
    name = "local"

    def __init__(self, engine: AsyncEngine | None = None):
        self.engine = engine or default_engine
        if engine is None:
            self._session_maker = async_session_maker
        else:
            self._session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    async def create_task(
        self, original_filename: str, album_name: str, source_path: str | None = None
    ) -> TaskRecord:
        task = Task(
            original_filename=original_filename,
            album_name=album_name,
            source_path=source_path,
            status="pending",
            progress=0,
            total_frames=0,
        )
        try:
            async with self._session_maker() as session:
                session.add(task)
                await session.commit()
                await session.refresh(task)
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to create task in Local PG: {e}") from e
        return TaskRecord.model_validate(task)

    async def get_task(self, task_id: str | UUID) -> TaskRecord | None:
        tid = parse_uuid(task_id)
        if tid is None:
            return None
        try:
            async with self._session_maker() as session:
                task = await session.get(Task, tid)
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to get task from Local PG: {e}") from e
        return TaskRecord.model_validate(task) if task else None

    async def list_tasks(self, skip: int = 0, limit: int = 20) -> list[TaskRecord]:
        q = select(Task).order_by(Task.created_at.desc()).offset(skip).limit(limit)
        try:
            async with self._session_maker() as session:
                result = await session.execute(q)
                tasks = result.scalars().all()
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to list tasks from Local PG: {e}") from e
        return [TaskRecord.model_validate(t) for t in tasks]

    async def count_tasks(self) -> int:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(func.count(Task.id)))
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to count tasks in Local PG: {e}") from e
        return result.scalar() or 0

    async def update_task_progress(self, task_id: str | UUID, progress: int, status: TaskStatus) -> None:
        # Single statement so concurrent writers cannot move progress backwards
        stmt = (
            update(Task)
            .where(Task.id == parse_uuid(task_id))
            .values(
                progress=case((Task.progress < progress, progress), else_=Task.progress),
                status=status,
                updated_at=datetime.utcnow(),
            )
        )
        await self._execute(stmt, "update task progress in")

    async def update_task_status(
        self,
        task_id: str | UUID,
        status: TaskStatus,
        total_frames: int | None = None,
        **metadata: Any,
    ) -> None:
        values: dict[str, Any] = {"status": status, "updated_at": datetime.utcnow(), **check_metadata(metadata)}
        if total_frames is not None:
            values["total_frames"] = total_frames
        stmt = update(Task).where(Task.id == parse_uuid(task_id)).values(**values)
        await self._execute(stmt, "update task status in")

    async def reset_failed_task(self, task_id: str | UUID) -> bool:
        stmt = (
            update(Task)
            .where(Task.id == parse_uuid(task_id), Task.status == "failed")
            .values(status="pending", progress=0, error_message=None, updated_at=datetime.utcnow())
        )
        result = await self._execute(stmt, "reset task in")
        return bool(result.rowcount)

    async def create_image(
        self,
        task_id: str | UUID,
        frame_number: int,
        filename: str,
        file_path: str,
        thumbnail_path: str | None = None,
        file_size: int | None = None,
    ) -> ImageRecord:
        image = Image(
            task_id=parse_uuid(task_id),
            frame_number=frame_number,
            filename=filename,
            file_path=file_path,
            thumbnail_path=thumbnail_path,
            file_size=file_size,
            is_favorite=False,
        )
        try:
            async with self._session_maker() as session:
                session.add(image)
                await session.commit()
                await session.refresh(image)
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to create image in Local PG: {e}") from e
        return ImageRecord.model_validate(image)

    def _images_query(self, tid: UUID | None, favorites_only: bool):
        q = select(Image).where(Image.task_id == tid)
        if favorites_only:
            q = q.where(Image.is_favorite.is_(True))
        return q

    async def get_images_by_task(
        self,
        task_id: str | UUID,
        skip: int = 0,
        limit: int | None = None,
        favorites_only: bool = False,
    ) -> list[ImageRecord]:
        q = self._images_query(parse_uuid(task_id), favorites_only).order_by(Image.frame_number.asc()).offset(skip)
        if limit is not None:
            q = q.limit(limit)
        try:
            async with self._session_maker() as session:
                result = await session.execute(q)
                images = result.scalars().all()
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to get images from Local PG: {e}") from e
        return [ImageRecord.model_validate(i) for i in images]

    async def count_images(self, task_id: str | UUID, favorites_only: bool = False) -> int:
        q = self._images_query(parse_uuid(task_id), favorites_only).with_only_columns(func.count(Image.id))
        try:
            async with self._session_maker() as session:
                result = await session.execute(q)
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to count images in Local PG: {e}") from e
        return result.scalar() or 0

    async def get_images_by_ids(self, task_id: str | UUID, image_ids: list[UUID]) -> list[ImageRecord]:
        if not image_ids:
            return []
        q = (
            select(Image)
            .where(Image.task_id == parse_uuid(task_id), Image.id.in_(image_ids))
            .order_by(Image.frame_number.asc())
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(q)
                images = result.scalars().all()
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to get images from Local PG: {e}") from e
        return [ImageRecord.model_validate(i) for i in images]

    async def set_favorite(self, task_id: str | UUID, image_ids: list[UUID], is_favorite: bool) -> int:
        if not image_ids:
            return 0
        stmt = (
            update(Image)
            .where(Image.task_id == parse_uuid(task_id), Image.id.in_(image_ids))
            .values(is_favorite=is_favorite)
        )
        result = await self._execute(stmt, "update favorites in")
        return result.rowcount or 0

    async def delete_images(self, task_id: str | UUID) -> int:
        result = await self._execute(delete(Image).where(Image.task_id == parse_uuid(task_id)), "delete images in")
        return result.rowcount or 0

    async def delete_task(self, task_id: str | UUID) -> bool:
        tid = parse_uuid(task_id)
        if tid is None:
            return False
        try:
            async with self._session_maker() as session:
                await session.execute(delete(Image).where(Image.task_id == tid))
                result = await session.execute(delete(Task).where(Task.id == tid))
                await session.commit()
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to delete task in Local PG: {e}") from e
        return bool(result.rowcount)

    async def ping(self) -> None:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise DbAdapterError(f"Local PG unreachable: {e}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    async def _execute(self, stmt, action: str):
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise DbAdapterError(f"Failed to {action} Local PG: {e}") from e
        return result
