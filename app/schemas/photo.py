"""
Photo-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, computed_field

from app.schemas.base import CamelModel
from app.schemas.storage import StorageDeletionReport
from app.utils.storage_keys import derive_medium_key, derive_thumbnail_key


class PhotoResponse(CamelModel):
    """Schema for photo response."""

    id: str
    user_id: str
    album_id: Optional[str] = None
    filename: str
    original_filename: str
    mime_type: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None
    s3_key: Optional[str] = None
    url: str
    thumbnail_url: Optional[str] = None
    is_s3_stored: bool = False
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias="photo_metadata"
    )
    created_at: datetime

    @computed_field(alias="thumbnailKey")
    @property
    def thumbnail_key(self) -> Optional[str]:
        if self.is_s3_stored and self.s3_key:
            return derive_thumbnail_key(self.s3_key)
        return None

    @computed_field(alias="mediumKey")
    @property
    def medium_key(self) -> Optional[str]:
        if self.is_s3_stored and self.s3_key:
            return derive_medium_key(self.s3_key)
        return None


class PhotoUpdate(CamelModel):
    """Move a photo into an album (albumId) or out of it (albumId: null)."""

    album_id: Optional[str] = None


class PaginationInfo(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PhotoPage(CamelModel):
    """One page of a photo listing."""

    data: List[PhotoResponse]
    pagination: PaginationInfo


class PhotoListResponse(PhotoPage):
    success: bool = True


class PhotoUploadResponse(CamelModel):
    """Schema for (batch) photo upload response."""

    success: bool = True
    photos: List[PhotoResponse] = Field(default_factory=list)
    message: str
    warnings: Optional[List[str]] = None


class PhotoDetailResponse(CamelModel):
    success: bool = True
    data: PhotoResponse


class PhotoDownloadUrlResponse(CamelModel):
    success: bool = True
    url: str
    expires_in: Optional[int] = None


class PhotoDeleteResponse(CamelModel):
    """Row deleted; storage_cleanup reports the objects removed, refused or skipped."""

    success: bool = True
    message: str = "Photo deleted successfully"
    storage_cleanup: StorageDeletionReport
    warning: Optional[str] = None
