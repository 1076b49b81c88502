"""Frame Catcher API - FastAPI application."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.db.adapters.base import DbAdapterError
from app.db.adapters.factory import close_adapters, get_adapter

setup_logging()
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await get_adapter().ping()
        logger.info("Database (%s): OK", settings.DEFAULT_DATA_SOURCE)
    except DbAdapterError as e:
        logger.warning("Database (%s) unavailable: %s", settings.DEFAULT_DATA_SOURCE, e)
    logger.info("Uploads: %s | Albums: %s | Processing: %s", settings.UPLOAD_DIR, settings.ALBUMS_DIR, settings.PROCESSING_MODE)
    logger.info("API: /api/v1 | Docs: /docs | Health: /health | Ready (DB): /ready")
    yield
    await close_adapters()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix="/api")

# Serve generated frames and thumbnails: albums/{task_id}/...
albums_dir = Path(settings.ALBUMS_DIR).resolve()
albums_dir.mkdir(parents=True, exist_ok=True)
app.mount("/albums", StaticFiles(directory=str(albums_dir)), name="albums")


@app.exception_handler(DbAdapterError)
async def db_adapter_error_handler(request: Request, exc: DbAdapterError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Database unavailable"})


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/ready")
async def ready():
    """Health check including the default data source."""
    try:
        await get_adapter().ping()
        return {"status": "ok", "database": "connected", "dataSource": settings.DEFAULT_DATA_SOURCE}
    except DbAdapterError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": str(e), "dataSource": settings.DEFAULT_DATA_SOURCE},
        )
