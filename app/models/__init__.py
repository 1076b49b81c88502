from app.models.task import Task
from app.models.image import Image

__all__ = ["Task", "Image"]
