from app.schemas.task import (
    TaskRecord,
    TaskStatus,
    DataSource,
    UploadResponse,
    ProgressResponse,
)
from app.schemas.image import ImageRecord, ImageResponse, FavoriteUpdate, BatchFavoriteUpdate
from app.schemas.album import AlbumSummary, AlbumListResponse, AlbumResponse
from app.schemas.download import ZipDownloadRequest, LocalSaveFile, LocalSaveRequest, LocalSaveResult, LocalSaveResponse
