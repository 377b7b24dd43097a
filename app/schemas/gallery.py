"""
Event gallery schemas (events, gallery albums and delivered photos).
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.photo import PaginationInfo
from app.schemas.storage import DeletionResult


class PhotoEventCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    user_ids: List[str] = Field(default_factory=list)


class PhotoEventUpdate(CamelModel):
    """userIds, when given, replaces the assigned users."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    user_ids: Optional[List[str]] = None


class EventUserInfo(CamelModel):
    id: str
    email: str
    name: Optional[str] = None


class GalleryPhotoResponse(CamelModel):
    id: str
    album_id: str
    filename: str
    s3_key: Optional[str] = None
    url: str
    size: int
    mime_type: str
    uploaded_at: datetime


class GalleryAlbumResponse(CamelModel):
    id: str
    event_id: str
    name: str
    description: Optional[str] = None
    created_at: datetime
    photo_count: int = 0


class GalleryAlbumPreview(GalleryAlbumResponse):
    """Album card: the first photos by upload time."""

    preview_photos: List[GalleryPhotoResponse] = Field(default_factory=list)


class PhotoEventResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    album_count: int = 0
    user_count: int = 0


class PhotoEventDetail(PhotoEventResponse):
    albums: List[GalleryAlbumResponse] = Field(default_factory=list)
    users: List[EventUserInfo] = Field(default_factory=list)


class UserEventDetail(PhotoEventResponse):
    albums: List[GalleryAlbumPreview] = Field(default_factory=list)


class PhotoEventListResponse(CamelModel):
    success: bool = True
    data: List[PhotoEventResponse]


class PhotoEventDetailResponse(CamelModel):
    success: bool = True
    data: PhotoEventDetail


class UserEventDetailResponse(CamelModel):
    success: bool = True
    data: UserEventDetail


class PhotoEventDeleteResponse(CamelModel):
    """Event removed with its albums and photos; storage_cleanup lists object keys."""

    success: bool = True
    message: str
    storage_cleanup: DeletionResult
    warning: Optional[str] = None


class GalleryAlbumCreate(CamelModel):
    event_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class GalleryAlbumListResponse(CamelModel):
    success: bool = True
    data: List[GalleryAlbumResponse]


class GalleryAlbumDetailResponse(CamelModel):
    success: bool = True
    data: GalleryAlbumResponse


class GalleryAlbumPhotosResponse(CamelModel):
    success: bool = True
    album: GalleryAlbumResponse
    data: List[GalleryPhotoResponse]


class GalleryPhotoUpdate(CamelModel):
    filename: Optional[str] = Field(None, min_length=1, max_length=255)
    album_id: Optional[str] = None


class GalleryPhotoDetailResponse(CamelModel):
    success: bool = True
    data: GalleryPhotoResponse


class GalleryPhotoListResponse(CamelModel):
    success: bool = True
    data: List[GalleryPhotoResponse]
    pagination: PaginationInfo


class GalleryPhotoDeleteResponse(CamelModel):
    success: bool = True
    message: str
    warning: Optional[str] = None
