"""Local disk storage for uploaded videos and generated albums.

Uploads:  {UPLOAD_DIR}/{uuid}.mp4
Albums:   {ALBUMS_DIR}/{task_id}/frame_0001.heic, frame_0001_thumb.jpg, ...
Paths stored in the database are relative to ALBUMS_DIR and served under /albums.
"""
import logging
import shutil
import tempfile
import uuid
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from fastapi import UploadFile

from app.core.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class UploadTooLargeError(Exception):
    def __init__(self, max_size_mb: int):
        super().__init__(f"File too large. Max {max_size_mb}MB")
        self.max_size_mb = max_size_mb


class LocalStorage:
    def __init__(self, upload_dir: str | Path | None = None, albums_dir: str | Path | None = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR).resolve()
        self.albums_dir = Path(albums_dir or settings.ALBUMS_DIR).resolve()

    async def save_upload(self, file: UploadFile, ext: str, max_size_mb: int | None = None) -> Path:
        """Stream an upload to disk in chunks, enforcing the size limit as it goes."""
        max_size_mb = max_size_mb or settings.MAX_UPLOAD_SIZE_MB
        limit = max_size_mb * 1024 * 1024
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.upload_dir / f"{uuid.uuid4().hex}{ext}"
        written = 0
        try:
            with filepath.open("wb") as out:
                while chunk := await file.read(CHUNK_SIZE):
                    written += len(chunk)
                    if written > limit:
                        raise UploadTooLargeError(max_size_mb)
                    out.write(chunk)
        except BaseException:
            filepath.unlink(missing_ok=True)
            raise
        return filepath

    def album_dir(self, task_id: str) -> Path:
        path = self.albums_dir / str(task_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def relative_path(self, path: str | Path) -> str:
        return Path(path).resolve().relative_to(self.albums_dir).as_posix()

    def resolve(self, rel: str) -> Path | None:
        """Resolve a stored relative path; None when it escapes ALBUMS_DIR."""
        candidate = (self.albums_dir / rel).resolve()
        if not candidate.is_relative_to(self.albums_dir):
            return None
        return candidate

    def public_url(self, rel: str | None) -> str | None:
        return f"/albums/{rel}" if rel else None

    def delete_album(self, task_id: str) -> bool:
        path = self.albums_dir / str(task_id)
        if not path.is_dir():
            return False
        shutil.rmtree(path, ignore_errors=True)
        return True

    def delete_upload(self, path: str | Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete upload %s: %s", path, e)

    def build_zip(self, entries: list[tuple[str, Path]]) -> BinaryIO:
        """Write (archive name, file) pairs into a temporary ZIP and return it rewound.

        HEIC/JPEG data is already compressed, so members are stored as-is.
        """
        spool = tempfile.SpooledTemporaryFile(max_size=64 * 1024 * 1024)
        with zipfile.ZipFile(spool, "w", compression=zipfile.ZIP_STORED) as zf:
            for arcname, path in entries:
                zf.write(path, arcname)
        spool.seek(0)
        return spool

    def copy_to(self, rel: str, target_dir: Path, name: str) -> Path:
        """Copy one album file into target_dir. Raises FileNotFoundError / ValueError."""
        source = self.resolve(rel)
        if source is None:
            raise ValueError("Path is outside the albums directory")
        if not source.is_file():
            raise FileNotFoundError("Source file not found")
        dest = target_dir / Path(name).name
        shutil.copy2(source, dest)
        return dest


def iter_file(fp: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    while chunk := fp.read(chunk_size):
        yield chunk


_storage: LocalStorage | None = None


def get_storage() -> LocalStorage:
    global _storage
    if _storage is None:
        _storage = LocalStorage()
    return _storage
