"""SQLAlchemy declarative base and model imports for Alembic."""
from app.db.session import Base  # noqa: F401
from app.models.task import Task  # noqa: F401
from app.models.image import Image  # noqa: F401

__all__ = ["Base", "Task", "Image"]
