"""
Photos router for photo management.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_active_user
from app.models.photo import Photo
from app.models.user import User
from app.schemas.photo import (
    PhotoDeleteResponse,
    PhotoDetailResponse,
    PhotoDownloadUrlResponse,
    PhotoListResponse,
    PhotoResponse,
    PhotoUpdate,
    PhotoUploadResponse,
)
from app.services.album import AlbumService
from app.services.photo import FileTooLargeError, PhotoService, UploadItem
from app.services.s3_storage import StorageError

logger = logging.getLogger("app.photos")

router = APIRouter(prefix="/photos", tags=["Photos"])


async def _get_accessible_photo(
    photo_service: PhotoService, photo_id: str, user: User
) -> Photo:
    """404 when missing, 403 when owned by someone else (admins pass)."""
    photo = await photo_service.get_photo_by_id(photo_id)
    if not photo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    if photo.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return photo


async def _ensure_album_owned(db: AsyncSession, album_id: str, user_id: str) -> None:
    album = await AlbumService(db).get_album_by_id(album_id, user_id)
    if not album:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Album not found",
        )


@router.post(
    "",
    response_model=PhotoUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload one or more photos",
)
async def upload_photos(
    file: Optional[UploadFile] = File(None, description="Single photo file"),
    files: Optional[List[UploadFile]] = File(None, description="Several photo files"),
    album_id: Optional[str] = Form(None, alias="albumId", description="Album to attach the photos to"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoUploadResponse:
    """
    Upload photos (multipart/form-data).

    - **file** / **files**: JPEG, PNG or WEBP images, up to MAX_UPLOAD_SIZE_BYTES each
    - **albumId**: optional album owned by the caller

    Each photo is stored as original, thumbnail and medium objects. In a batch
    one file's failure never aborts the others; failures are listed in
    `warnings`.
    """
    uploads = ([file] if file is not None else []) + list(files or [])
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    if album_id:
        await _ensure_album_owned(db, album_id, current_user.id)
    else:
        album_id = None

    items = [
        UploadItem(
            filename=upload.filename or "photo",
            content_type=upload.content_type or "",
            data=await upload.read(),
        )
        for upload in uploads
    ]
    photo_service = PhotoService(db)

    if len(items) == 1:
        try:
            photo = await photo_service.upload_photo(current_user, items[0], album_id=album_id)
        except FileTooLargeError as e:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))
        except StorageError as e:
            logger.error("Photo upload failed", exc_info=e, extra={"event": "photo", "user_id": current_user.id})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to store photo",
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        await db.commit()
        return PhotoUploadResponse(
            photos=[PhotoResponse.model_validate(photo)],
            message="1 of 1 photo(s) uploaded",
        )

    result = await photo_service.upload_photos(current_user, items, album_id=album_id)
    if not result.photos:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No photos were uploaded: {'; '.join(result.errors)}",
        )
    await db.commit()
    return PhotoUploadResponse(
        photos=[PhotoResponse.model_validate(p) for p in result.photos],
        message=result.message,
        warnings=result.errors or None,
    )


@router.get(
    "",
    response_model=PhotoListResponse,
    summary="List photos",
)
async def list_photos(
    album_id: Optional[str] = Query(None, alias="albumId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, description="Page size (capped at 100)"),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoListResponse:
    """
    Newest-first photos of the caller, optionally filtered by album.
    Listing another user's photos (userId) requires admin.
    """
    if user_id and user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    page = await PhotoService(db).list_photos(
        user_id=user_id or current_user.id,
        album_id=album_id,
        limit=limit,
        offset=offset,
    )
    return PhotoListResponse(data=page.data, pagination=page.pagination)


@router.get(
    "/{photo_id}",
    response_model=PhotoDetailResponse,
    summary="Get photo details",
)
async def get_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoDetailResponse:
    photo_service = PhotoService(db)
    photo = await _get_accessible_photo(photo_service, photo_id, current_user)
    return PhotoDetailResponse(data=photo_service.get_photo_with_url(photo))


@router.get(
    "/{photo_id}/download-url",
    response_model=PhotoDownloadUrlResponse,
    summary="Get a download URL for the original",
)
async def get_photo_download_url(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoDownloadUrlResponse:
    """
    Presigned GET URL (expires after S3_PRESIGNED_URL_EXPIRE_SECONDS) for
    S3-stored photos, otherwise the stored URL.
    """
    photo_service = PhotoService(db)
    photo = await _get_accessible_photo(photo_service, photo_id, current_user)
    try:
        url, expires_in = await photo_service.get_photo_download_url(photo)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate download URL",
        )
    return PhotoDownloadUrlResponse(url=url, expires_in=expires_in)


@router.patch(
    "/{photo_id}",
    response_model=PhotoDetailResponse,
    summary="Move a photo between albums",
)
async def update_photo(
    photo_id: str,
    update_data: PhotoUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoDetailResponse:
    """
    - **albumId**: target album (owned by the photo's owner), or null to
      remove the photo from its album
    """
    photo_service = PhotoService(db)
    photo = await _get_accessible_photo(photo_service, photo_id, current_user)

    if "album_id" in update_data.model_fields_set:
        if update_data.album_id:
            await _ensure_album_owned(db, update_data.album_id, photo.user_id)
        photo = await photo_service.move_photo(photo, update_data.album_id or None)
        await db.commit()

    return PhotoDetailResponse(data=photo_service.get_photo_with_url(photo))


@router.delete(
    "/{photo_id}",
    response_model=PhotoDeleteResponse,
    summary="Delete a photo",
)
async def delete_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> PhotoDeleteResponse:
    """
    Delete a photo: its original, thumbnail and medium objects, then the
    database row. The row is deleted even if some objects could not be.
    """
    photo_service = PhotoService(db)
    photo = await photo_service.get_photo_by_id(photo_id)
    if not photo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    if photo.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    report = await photo_service.delete_photo(photo)
    await db.commit()
    return PhotoDeleteResponse(
        storage_cleanup=report,
        warning=(
            f"{len(report.errors)} stored object(s) could not be deleted"
            if report.has_errors else None
        ),
    )
