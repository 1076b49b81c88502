import asyncio
import sys
import os
from datetime import datetime, timedelta

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select, update
from app.db.session import async_session_maker, dispose_engine
from app.models.task import Task


async def fail_stuck_tasks(max_age_minutes: int):
    """
    Mark local tasks stuck in pending/processing (e.g. worker crashed) as failed,
    so they can be retried from the API.
    """
    cutoff = datetime.utcnow() - timedelta(minutes=max_age_minutes)
    try:
        async with async_session_maker() as session:
            result = await session.execute(
                select(Task.id, Task.original_filename).where(
                    Task.status.in_(("pending", "processing")),
                    Task.updated_at < cutoff,
                )
            )
            stuck = result.all()
            if not stuck:
                print("No stuck tasks.")
                return

            await session.execute(
                update(Task)
                .where(Task.id.in_([task_id for task_id, _ in stuck]))
                .values(status="failed", error_message="Processing interrupted", updated_at=datetime.utcnow())
            )
            await session.commit()
            for task_id, filename in stuck:
                print(f"Failed: {task_id} ({filename})")
    finally:
        await dispose_engine()


if __name__ == "__main__":
    minutes = int(sys.argv[1]) if len(sys.argv) > 1 else 60
    asyncio.run(fail_stuck_tasks(minutes))
