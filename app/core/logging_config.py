"""Logging setup shared by the API process and the Celery worker."""
import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)
    # httpx logs every Supabase request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
