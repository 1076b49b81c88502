"""Supabase adapter (supabase-py async client on the `tasks` / `images` tables)."""
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from app.core.config import settings
from app.db.adapters.base import DbAdapterError, check_metadata, parse_uuid
from app.schemas.image import ImageRecord
from app.schemas.task import TaskRecord, TaskStatus

logger = logging.getLogger(__name__)

STORE_ERRORS = (APIError, httpx.HTTPError)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseAdapter:
    name = "supabase"

    def __init__(self, client: AsyncClient | None = None, url: str | None = None, key: str | None = None):
        self._client = client
        self.url = url or settings.SUPABASE_URL
        self.key = key or settings.SUPABASE_KEY

    async def client(self) -> AsyncClient:
        if self._client is None:
            if not self.url or not self.key:
                raise DbAdapterError("Supabase is not configured (SUPABASE_URL / SUPABASE_KEY)")
            self._client = await acreate_client(self.url, self.key)
        return self._client

    async def _run(self, query, action: str):
        try:
            return await query.execute()
        except STORE_ERRORS as e:
            raise DbAdapterError(f"Failed to {action} Supabase: {e}") from e

    async def create_task(
        self, original_filename: str, album_name: str, source_path: str | None = None
    ) -> TaskRecord:
        db = await self.client()
        res = await self._run(
            db.table("tasks").insert(
                {
                    "original_filename": original_filename,
                    "album_name": album_name,
                    "source_path": source_path,
                    "status": "pending",
                    "progress": 0,
                    "total_frames": 0,
                }
            ),
            "create task in",
        )
        if not res.data:
            raise DbAdapterError("Failed to create task in Supabase: no row returned")
        return TaskRecord.model_validate(res.data[0])

    async def get_task(self, task_id: str | UUID) -> TaskRecord | None:
        tid = parse_uuid(task_id)
        if tid is None:
            return None
        db = await self.client()
        res = await self._run(db.table("tasks").select("*").eq("id", str(tid)).limit(1), "get task from")
        return TaskRecord.model_validate(res.data[0]) if res.data else None

    async def list_tasks(self, skip: int = 0, limit: int = 20) -> list[TaskRecord]:
        db = await self.client()
        res = await self._run(
            db.table("tasks").select("*").order("created_at", desc=True).range(skip, skip + limit - 1),
            "list tasks from",
        )
        return [TaskRecord.model_validate(row) for row in res.data or []]

    async def count_tasks(self) -> int:
        db = await self.client()
        res = await self._run(db.table("tasks").select("id", count="exact").limit(1), "count tasks in")
        return res.count or 0

    async def update_task_progress(self, task_id: str | UUID, progress: int, status: TaskStatus) -> None:
        db = await self.client()
        tid = str(parse_uuid(task_id))
        now = _now()
        # Conditional write: only rows whose stored progress is not ahead of ours
        res = await self._run(
            db.table("tasks")
            .update({"progress": progress, "status": status, "updated_at": now})
            .eq("id", tid)
            .lte("progress", progress),
            "update task progress in",
        )
        if not res.data:
            await self._run(
                db.table("tasks").update({"status": status, "updated_at": now}).eq("id", tid),
                "update task progress in",
            )

    async def update_task_status(
        self,
        task_id: str | UUID,
        status: TaskStatus,
        total_frames: int | None = None,
        **metadata: Any,
    ) -> None:
        db = await self.client()
        data: dict[str, Any] = {"status": status, "updated_at": _now(), **check_metadata(metadata)}
        if total_frames is not None:
            data["total_frames"] = total_frames
        await self._run(
            db.table("tasks").update(data).eq("id", str(parse_uuid(task_id))),
            "update task status in",
        )

    async def reset_failed_task(self, task_id: str | UUID) -> bool:
        tid = parse_uuid(task_id)
        if tid is None:
            return False
        db = await self.client()
        res = await self._run(
            db.table("tasks")
            .update({"status": "pending", "progress": 0, "error_message": None, "updated_at": _now()})
            .eq("id", str(tid))
            .eq("status", "failed"),
            "reset task in",
        )
        return bool(res.data)

    async def create_image(
        self,
        task_id: str | UUID,
        frame_number: int,
        filename: str,
        file_path: str,
        thumbnail_path: str | None = None,
        file_size: int | None = None,
    ) -> ImageRecord:
        db = await self.client()
        res = await self._run(
            db.table("images").insert(
                {
                    "task_id": str(task_id),
                    "frame_number": frame_number,
                    "filename": filename,
                    "file_path": file_path,
                    "thumbnail_path": thumbnail_path,
                    "file_size": file_size,
                    "is_favorite": False,
                }
            ),
            "create image in",
        )
        if not res.data:
            raise DbAdapterError("Failed to create image in Supabase: no row returned")
        return ImageRecord.model_validate(res.data[0])

    async def get_images_by_task(
        self,
        task_id: str | UUID,
        skip: int = 0,
        limit: int | None = None,
        favorites_only: bool = False,
    ) -> list[ImageRecord]:
        db = await self.client()
        q = db.table("images").select("*").eq("task_id", str(task_id))
        if favorites_only:
            q = q.eq("is_favorite", True)
        q = q.order("frame_number")
        if limit is not None:
            q = q.range(skip, skip + limit - 1)
        elif skip:
            q = q.offset(skip)
        res = await self._run(q, "get images from")
        return [ImageRecord.model_validate(row) for row in res.data or []]

    async def count_images(self, task_id: str | UUID, favorites_only: bool = False) -> int:
        db = await self.client()
        q = db.table("images").select("id", count="exact").eq("task_id", str(task_id))
        if favorites_only:
            q = q.eq("is_favorite", True)
        res = await self._run(q.limit(1), "count images in")
        return res.count or 0

    async def get_images_by_ids(self, task_id: str | UUID, image_ids: list[UUID]) -> list[ImageRecord]:
        if not image_ids:
            return []
        db = await self.client()
        res = await self._run(
            db.table("images")
            .select("*")
            .eq("task_id", str(task_id))
            .in_("id", [str(i) for i in image_ids])
            .order("frame_number"),
            "get images from",
        )
        return [ImageRecord.model_validate(row) for row in res.data or []]

    async def set_favorite(self, task_id: str | UUID, image_ids: list[UUID], is_favorite: bool) -> int:
        if not image_ids:
            return 0
        db = await self.client()
        res = await self._run(
            db.table("images")
            .update({"is_favorite": is_favorite})
            .eq("task_id", str(task_id))
            .in_("id", [str(i) for i in image_ids]),
            "update favorites in",
        )
        return len(res.data or [])

    async def delete_images(self, task_id: str | UUID) -> int:
        db = await self.client()
        res = await self._run(db.table("images").delete().eq("task_id", str(task_id)), "delete images in")
        return len(res.data or [])

    async def delete_task(self, task_id: str | UUID) -> bool:
        tid = parse_uuid(task_id)
        if tid is None:
            return False
        await self.delete_images(tid)
        db = await self.client()
        res = await self._run(db.table("tasks").delete().eq("id", str(tid)), "delete task in")
        return bool(res.data)

    async def ping(self) -> None:
        db = await self.client()
        await self._run(db.table("tasks").select("id").limit(1), "reach")

    async def close(self) -> None:
        # The async client's httpx sessions are bound to the loop that created them
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.postgrest.aclose()
        except httpx.HTTPError as e:
            logger.warning("Closing Supabase session failed: %s", e)
