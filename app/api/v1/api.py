"""V1 API router aggregation."""
from fastapi import APIRouter

from app.api.v1.endpoints import albums, download, progress, upload

api_router = APIRouter(prefix="/v1")
api_router.include_router(upload.router)
api_router.include_router(progress.router)
api_router.include_router(albums.router)
api_router.include_router(download.router)
