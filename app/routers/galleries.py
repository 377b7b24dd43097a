"""
Event gallery routers.

admin_router: events, gallery albums, uploads and photo management (admins).
user_router: events assigned to the caller, browsing and ZIP download.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_active_user, get_current_admin_user
from app.models.gallery import GalleryAlbum, GalleryPhoto, PhotoEvent
from app.models.user import User
from app.schemas.gallery import (
    GalleryAlbumCreate,
    GalleryAlbumDetailResponse,
    GalleryAlbumListResponse,
    GalleryAlbumPhotosResponse,
    GalleryPhotoDeleteResponse,
    GalleryPhotoDetailResponse,
    GalleryPhotoListResponse,
    GalleryPhotoResponse,
    GalleryPhotoUpdate,
    PhotoEventCreate,
    PhotoEventDeleteResponse,
    PhotoEventDetailResponse,
    PhotoEventListResponse,
    PhotoEventUpdate,
    UserEventDetailResponse,
)
from app.services.gallery import GalleryService
from app.services.photo import FileTooLargeError, UploadItem
from app.services.s3_storage import StorageError

logger = logging.getLogger("app.gallery")

admin_router = APIRouter(prefix="/admin", tags=["Event galleries"])
user_router = APIRouter(prefix="/user/photo-events", tags=["Event galleries"])


async def _event_or_404(
    service: GalleryService, event_id: str, user_id: Optional[str] = None
) -> PhotoEvent:
    # 배정되지 않은 사용자에게도 404 (이벤트 존재 여부 노출 안 함)
    event = await service.get_event(event_id, user_id=user_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


async def _album_or_404(
    service: GalleryService, album_id: str, event_id: Optional[str] = None
) -> GalleryAlbum:
    album = await service.get_album(album_id, event_id=event_id)
    if not album:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    return album


async def _photo_or_404(service: GalleryService, photo_id: str) -> GalleryPhoto:
    photo = await service.get_photo(photo_id)
    if not photo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    return photo


# ============== Admin: events ==============

@admin_router.get("/photo-events", response_model=PhotoEventListResponse, summary="List events")
async def list_events(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoEventListResponse:
    return PhotoEventListResponse(data=await GalleryService(db).list_events())


@admin_router.post(
    "/photo-events",
    response_model=PhotoEventDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an event",
)
async def create_event(
    event_data: PhotoEventCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoEventDetailResponse:
    """
    - **name**: event name
    - **userIds**: users who may browse and download the event
    """
    service = GalleryService(db)
    try:
        event = await service.create_event(event_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    detail = await service.get_event_detail(event)
    await db.commit()
    return PhotoEventDetailResponse(data=detail)


@admin_router.get(
    "/photo-events/{event_id}",
    response_model=PhotoEventDetailResponse,
    summary="Get an event with albums and users",
)
async def get_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoEventDetailResponse:
    service = GalleryService(db)
    event = await _event_or_404(service, event_id)
    return PhotoEventDetailResponse(data=await service.get_event_detail(event))


@admin_router.patch(
    "/photo-events/{event_id}",
    response_model=PhotoEventDetailResponse,
    summary="Update an event",
)
async def update_event(
    event_id: str,
    update_data: PhotoEventUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoEventDetailResponse:
    """userIds, when given, replaces the assigned users."""
    service = GalleryService(db)
    event = await _event_or_404(service, event_id)
    try:
        event = await service.update_event(event, update_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    detail = await service.get_event_detail(event)
    await db.commit()
    return PhotoEventDetailResponse(data=detail)


@admin_router.delete(
    "/photo-events/{event_id}",
    response_model=PhotoEventDeleteResponse,
    summary="Delete an event",
)
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoEventDeleteResponse:
    """Deletes the event, its albums, its photos and their stored objects."""
    service = GalleryService(db)
    event = await _event_or_404(service, event_id)
    result = await service.delete_event(event)
    await db.commit()
    return PhotoEventDeleteResponse(
        message="Event deleted successfully",
        storage_cleanup=result,
        warning=(
            f"{len(result.errors)} stored object(s) could not be deleted"
            if result.errors else None
        ),
    )


# ============== Admin: albums ==============

@admin_router.get("/photo-albums", response_model=GalleryAlbumListResponse, summary="List gallery albums")
async def list_gallery_albums(
    event_id: Optional[str] = Query(None, alias="eventId"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryAlbumListResponse:
    return GalleryAlbumListResponse(data=await GalleryService(db).list_albums(event_id))


@admin_router.post(
    "/photo-albums",
    response_model=GalleryAlbumDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a gallery album",
)
async def create_gallery_album(
    album_data: GalleryAlbumCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryAlbumDetailResponse:
    """An album with the same name in the event is returned as is (200)."""
    service = GalleryService(db)
    event = await _event_or_404(service, album_data.event_id)
    album, created = await service.get_or_create_album(event, album_data.name, album_data.description)
    if not created:
        response.status_code = status.HTTP_200_OK
    data = await service.get_album_response(album)
    await db.commit()
    return GalleryAlbumDetailResponse(data=data)


# ============== Admin: photos ==============

@admin_router.post(
    "/photo-upload",
    response_model=GalleryPhotoDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a photo to a gallery album",
)
async def upload_gallery_photo(
    file: UploadFile = File(..., description="JPEG, PNG, GIF or WEBP"),
    album_id: str = Form(..., alias="albumId"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryPhotoDetailResponse:
    """Stored as uploaded under gallery/{eventId}/{albumId}/ (no resizing)."""
    service = GalleryService(db)
    album = await _album_or_404(service, album_id)
    item = UploadItem(
        filename=file.filename or "photo",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    try:
        photo = await service.upload_photo(album, item)
    except FileTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
    except StorageError as e:
        logger.error("Gallery upload failed", exc_info=e, extra={"event": "gallery", "album_id": album_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store photo",
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await db.commit()
    return GalleryPhotoDetailResponse(data=GalleryPhotoResponse.model_validate(photo))


@admin_router.get("/photo-galleries", response_model=GalleryPhotoListResponse, summary="List gallery photos")
async def list_gallery_photos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, description="Page size (capped at 100)"),
    album_id: Optional[str] = Query(None, alias="albumId"),
    event_id: Optional[str] = Query(None, alias="eventId"),
    search: Optional[str] = Query(None, description="Matches filename or album name"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryPhotoListResponse:
    photos, pagination = await GalleryService(db).list_photos(
        page=page,
        limit=limit,
        album_id=album_id,
        event_id=event_id,
        search=search,
    )
    return GalleryPhotoListResponse(data=photos, pagination=pagination)


@admin_router.get(
    "/photo-galleries/{photo_id}",
    response_model=GalleryPhotoDetailResponse,
    summary="Get a gallery photo",
)
async def get_gallery_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryPhotoDetailResponse:
    photo = await _photo_or_404(GalleryService(db), photo_id)
    return GalleryPhotoDetailResponse(data=GalleryPhotoResponse.model_validate(photo))


@admin_router.patch(
    "/photo-galleries/{photo_id}",
    response_model=GalleryPhotoDetailResponse,
    summary="Rename or move a gallery photo",
)
async def update_gallery_photo(
    photo_id: str,
    update_data: GalleryPhotoUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryPhotoDetailResponse:
    service = GalleryService(db)
    photo = await _photo_or_404(service, photo_id)
    if update_data.album_id is not None:
        await _album_or_404(service, update_data.album_id)
    photo = await service.update_photo(photo, update_data)
    await db.commit()
    return GalleryPhotoDetailResponse(data=GalleryPhotoResponse.model_validate(photo))


@admin_router.delete(
    "/photo-galleries/{photo_id}",
    response_model=GalleryPhotoDeleteResponse,
    summary="Delete a gallery photo",
)
async def delete_gallery_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> GalleryPhotoDeleteResponse:
    """The row is deleted even if the stored object could not be."""
    service = GalleryService(db)
    photo = await _photo_or_404(service, photo_id)
    storage_ok = await service.delete_photo(photo)
    await db.commit()
    return GalleryPhotoDeleteResponse(
        message="Photo deleted successfully",
        warning=None if storage_ok else "Stored object could not be deleted",
    )


# ============== User: assigned events ==============

@user_router.get("", response_model=PhotoEventListResponse, summary="List my events")
async def list_my_events(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoEventListResponse:
    return PhotoEventListResponse(data=await GalleryService(db).list_events(user_id=current_user.id))


@user_router.get("/{event_id}", response_model=UserEventDetailResponse, summary="Get one of my events")
async def get_my_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UserEventDetailResponse:
    """Albums with photo counts and up to three preview photos each."""
    service = GalleryService(db)
    event = await _event_or_404(service, event_id, user_id=current_user.id)
    return UserEventDetailResponse(data=await service.get_user_event_detail(event))


@user_router.get(
    "/{event_id}/albums",
    response_model=GalleryAlbumListResponse,
    summary="List the albums of one of my events",
)
async def list_my_event_albums(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> GalleryAlbumListResponse:
    service = GalleryService(db)
    event = await _event_or_404(service, event_id, user_id=current_user.id)
    return GalleryAlbumListResponse(data=await service.list_albums(event.id))


@user_router.get(
    "/{event_id}/albums/{album_id}",
    response_model=GalleryAlbumPhotosResponse,
    summary="List the photos of an album",
)
async def list_my_album_photos(
    event_id: str,
    album_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> GalleryAlbumPhotosResponse:
    service = GalleryService(db)
    event = await _event_or_404(service, event_id, user_id=current_user.id)
    album = await _album_or_404(service, album_id, event_id=event.id)
    return GalleryAlbumPhotosResponse(
        album=await service.get_album_response(album),
        data=await service.get_album_photos(album.id),
    )


@user_router.get(
    "/{event_id}/download",
    summary="Download one of my events as ZIP",
    response_class=Response,
)
async def download_my_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Response:
    """One folder per album; photos that cannot be read are left out."""
    service = GalleryService(db)
    event = await _event_or_404(service, event_id, user_id=current_user.id)
    try:
        archive = await service.build_event_zip(event)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{service.zip_filename(event)}"'},
    )
