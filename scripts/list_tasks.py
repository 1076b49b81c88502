import asyncio
import sys
import os

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.adapters.factory import close_adapters, get_adapter


async def list_tasks(data_source: str | None, limit: int = 50):
    db = get_adapter(data_source)
    try:
        tasks = await db.list_tasks(limit=limit)
        if not tasks:
            print(f"No tasks found in {db.name}.")
            return
        print(f"Latest tasks ({db.name}):")
        for t in tasks:
            line = f"- {t.id} {t.status:<10} {t.progress:>3}% {t.total_frames:>6} frames  {t.original_filename}"
            if t.error_message:
                line += f"  [{t.error_message[:60]}]"
            print(line)
    finally:
        await close_adapters()


if __name__ == "__main__":
    source = sys.argv[1] if len(sys.argv) > 1 else None
    asyncio.run(list_tasks(source))
