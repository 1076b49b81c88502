"""Dispatch of video processing: Celery task or inline on the API event loop."""
import asyncio
import logging
from pathlib import Path

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.adapters.factory import close_adapters
from app.services.processing_service import process_video

logger = logging.getLogger(__name__)

# Strong references to inline jobs so they are not garbage collected mid-run
_inline_jobs: set[asyncio.Task] = set()


async def _process_in_worker(task_id: str, input_path: str, data_source: str | None) -> bool:
    try:
        return await process_video(task_id, input_path, data_source)
    finally:
        # Connections and HTTP sessions die with this event loop
        await close_adapters()


@celery_app.task(name="process_video_task")
def process_video_task(task_id: str, input_path: str, data_source: str | None = None) -> bool:
    """Extract and encode all frames of an uploaded video."""
    return asyncio.run(_process_in_worker(task_id, input_path, data_source))


def enqueue_video_processing(task_id: str, input_path: str | Path, data_source: str | None = None) -> None:
    """Start processing without waiting for it. Inline mode must be called from a running event loop."""
    if settings.PROCESSING_MODE == "inline":
        job = asyncio.get_running_loop().create_task(process_video(task_id, input_path, data_source))
        _inline_jobs.add(job)
        job.add_done_callback(_inline_jobs.discard)
        return
    process_video_task.delay(task_id, str(input_path), data_source)
    logger.info("Queued processing for task %s", task_id)
