"""Async database engine and session factory for the local Postgres store."""
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)

# Mask password in logs (show only host/db part)
_db_display = settings.DATABASE_URL.split("@")[-1].split("?")[0] if "@" in settings.DATABASE_URL else "configured"
logger.debug("Local database URL: ...@%s", _db_display)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    connect_args={"timeout": 10},
)


class Base(DeclarativeBase):
    pass


async_session_maker = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autoflush=False,
)


async def dispose_engine() -> None:
    """Close pooled connections. Needed before the event loop that opened them goes away."""
    await engine.dispose()
