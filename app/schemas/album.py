"""
Album-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.models.album import AlbumStatus
from app.schemas.base import CamelModel
from app.schemas.storage import StorageDeletionReport


class AlbumBase(CamelModel):
    """Base schema with common album attributes."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    album_size: Optional[str] = Field(None, max_length=50)


class AlbumCreate(AlbumBase):
    """Schema for album creation."""

    status: AlbumStatus = AlbumStatus.DRAFT


class AlbumUpdate(CamelModel):
    """Schema for updating album."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[AlbumStatus] = None
    album_size: Optional[str] = Field(None, max_length=50)


class AlbumResponse(AlbumBase):
    """Schema for album response."""

    id: str
    user_id: str
    status: AlbumStatus
    photo_count: int = 0
    created_at: datetime
    updated_at: datetime


class AlbumDetailResponse(CamelModel):
    success: bool = True
    data: AlbumResponse


class AlbumListResponse(CamelModel):
    success: bool = True
    data: List[AlbumResponse]


class AlbumDeleteData(CamelModel):
    message: str
    storage_cleanup: StorageDeletionReport


class AlbumDeleteResponse(CamelModel):
    """Album deleted; warning is set when some objects could not be removed."""

    success: bool = True
    data: AlbumDeleteData
    warning: Optional[str] = None


class AlbumBatchCreate(CamelModel):
    """Several albums for the caller in one request."""

    albums: List[AlbumCreate] = Field(..., min_length=1, max_length=50)


class AdminAlbumBatchCreate(AlbumBatchCreate):
    user_id: str = Field(..., min_length=1)


class AlbumBatchResponse(CamelModel):
    success: bool = True
    data: List[AlbumResponse]
    total: int
    message: str
