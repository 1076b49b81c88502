"""Video processing pipeline: probe, extract frames, encode HEIC + thumbnails, record images."""
import asyncio
import logging
from pathlib import Path

from app.core.config import settings
from app.db.adapters.base import DbAdapter
from app.db.adapters.factory import get_adapter
from app.services import ffmpeg_service
from app.services.ffmpeg_service import FFmpegError
from app.services.progress import WeightedProgress, to_percent
from app.services.storage_service import LocalStorage, get_storage

logger = logging.getLogger(__name__)

# Output file prefix; the album name may contain characters unsafe for file systems
FRAME_PREFIX = "frame"


class ProgressReporter:
    """Turns weighted frame units into percentages and writes them when they change."""

    def __init__(self, db: DbAdapter, task_id: str):
        self.db = db
        self.task_id = task_id
        self.last_percent = -1

    async def report(self, units: int, total: int) -> int:
        percent = to_percent(units, total)
        if percent > self.last_percent:
            self.last_percent = percent
            await self.db.update_task_progress(self.task_id, percent, "processing")
        return percent


async def _encode_frame(png: Path, heic: Path, thumb: Path) -> None:
    """HEIC and thumbnail encodes of one frame, run side by side. If one fails the other is cancelled."""
    encodes = [
        asyncio.ensure_future(ffmpeg_service.convert_to_heic(png, heic)),
        asyncio.ensure_future(ffmpeg_service.generate_thumbnail(png, thumb)),
    ]
    try:
        await asyncio.gather(*encodes)
    except BaseException:
        for job in encodes:
            job.cancel()
        await asyncio.gather(*encodes, return_exceptions=True)
        raise


async def process_video(
    task_id: str,
    input_path: str | Path,
    data_source: str | None = None,
    *,
    db: DbAdapter | None = None,
    storage: LocalStorage | None = None,
) -> bool:
    """Run the whole pipeline for one task. Returns False (task marked failed) on error."""
    db = db or get_adapter(data_source)
    storage = storage or get_storage()
    weights = WeightedProgress(settings.EXTRACT_WEIGHT)
    reporter = ProgressReporter(db, task_id)
    input_path = Path(input_path)
    logger.info("Processing task %s from %s (%s)", task_id, input_path.name, db.name)

    try:
        await db.update_task_status(task_id, "processing")

        info = await ffmpeg_service.get_video_info(input_path)
        await db.update_task_status(
            task_id,
            "processing",
            info.total_frames,
            resolution=info.resolution,
            fps=info.fps,
            duration=info.duration,
        )
        album_dir = storage.album_dir(task_id)

        async def on_extract(current: int, total: int) -> None:
            await reporter.report(weights.extraction(current, total), total)

        pngs = await ffmpeg_service.extract_frames(input_path, album_dir, FRAME_PREFIX, on_extract, video_info=info)
        if not pngs:
            raise FFmpegError("ffmpeg produced no frames")

        total = info.total_frames
        if total <= 0:
            total = len(pngs)
            await db.update_task_status(task_id, "processing", total)
        await reporter.report(weights.extraction_done(total), total)

        for index, png in enumerate(pngs, start=1):
            heic = png.with_suffix(".heic")
            thumb = png.with_name(f"{png.stem}_thumb.jpg")
            await _encode_frame(png, heic, thumb)
            png.unlink(missing_ok=True)
            await db.create_image(
                task_id,
                index,
                heic.name,
                storage.relative_path(heic),
                thumbnail_path=storage.relative_path(thumb),
                file_size=heic.stat().st_size,
            )
            await reporter.report(weights.conversion(index, len(pngs), total), total)

        await db.update_task_status(task_id, "completed", progress=100)
        storage.delete_upload(input_path)
        logger.info("Task %s completed: %d frames", task_id, len(pngs))
        return True
    except Exception as e:
        logger.exception("Video processing failed for task %s", task_id)
        try:
            await db.update_task_status(task_id, "failed", error_message=str(e)[:1000])
        except Exception:
            logger.exception("Could not mark task %s as failed", task_id)
        return False
