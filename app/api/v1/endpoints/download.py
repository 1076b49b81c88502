"""Save album files into a directory on the server host (desktop deployments)."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_local_storage
from app.schemas.download import LocalSaveRequest, LocalSaveResponse, LocalSaveResult
from app.services.storage_service import LocalStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/download", tags=["download"])

DEFAULT_DOWNLOAD_DIRNAME = "frame-catcher-output"


@router.get("/default-path")
async def default_download_path():
    return {"defaultPath": str(Path.home() / "Downloads" / DEFAULT_DOWNLOAD_DIRNAME)}


@router.post("/local", response_model=LocalSaveResponse)
async def save_files_locally(
    data: LocalSaveRequest,
    storage: LocalStorage = Depends(get_local_storage),
):
    target_dir = Path(data.target_dir).expanduser()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot create target directory: {e}",
        )

    results: list[LocalSaveResult] = []
    for f in data.files:
        try:
            storage.copy_to(f.path, target_dir, f.name)
            results.append(LocalSaveResult(name=f.name, status="success"))
        except (OSError, ValueError) as e:
            logger.warning("Local save failed for %s: %s", f.path, e)
            results.append(LocalSaveResult(name=f.name, status="failed", error=str(e)))
    return LocalSaveResponse(results=results)
