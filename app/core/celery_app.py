"""Celery application for background video processing."""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from app.core.config import settings
from app.core.logging_config import setup_logging

celery_app = Celery(
    "frame_catcher",
    broker=settings.CELERY_BROKER_URL,
    include=["app.workers.video_processing"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    setup_logging()
