"""
Albums router for album management.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_active_user
from app.models.album import Album
from app.models.user import User
from app.schemas.album import (
    AlbumBatchCreate,
    AlbumBatchResponse,
    AlbumCreate,
    AlbumDeleteData,
    AlbumDeleteResponse,
    AlbumDetailResponse,
    AlbumListResponse,
    AlbumResponse,
    AlbumUpdate,
)
from app.schemas.storage import StorageDeletionReport
from app.services.album import AlbumService

router = APIRouter(prefix="/albums", tags=["Albums"])


async def _get_owned_album(album_service: AlbumService, album_id: str, user: User) -> Album:
    album = await album_service.get_album_by_id(album_id)
    if not album:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")
    if album.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return album


def build_delete_response(report: StorageDeletionReport) -> AlbumDeleteResponse:
    """Album 삭제 응답. 스토리지 오류가 있으면 warning 포함."""
    warning = None
    if report.has_errors:
        warning = (
            f"Album deleted, but {report.summary.error_count} photo(s) "
            "could not be fully removed from storage"
        )
    return AlbumDeleteResponse(
        data=AlbumDeleteData(message="Album deleted successfully", storage_cleanup=report),
        warning=warning,
    )


def build_batch_response(albums: List[AlbumResponse]) -> AlbumBatchResponse:
    return AlbumBatchResponse(
        data=albums,
        total=len(albums),
        message=f"{len(albums)} album(s) created",
    )


@router.post(
    "",
    response_model=AlbumDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new album",
)
async def create_album(
    album_data: AlbumCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumDetailResponse:
    """
    Create a new photo album.

    - **name**: Album name (required)
    - **description**: Optional album description
    - **status**: DRAFT (default), IN_PROGRESS or COMPLETED
    - **albumSize**: Optional print size label
    """
    album_service = AlbumService(db)
    album = await album_service.create_album(current_user, album_data)
    response = await album_service.get_album_response(album)
    await db.commit()
    return AlbumDetailResponse(data=response)


@router.post(
    "/batch",
    response_model=AlbumBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create several albums",
)
async def create_albums(
    batch: AlbumBatchCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumBatchResponse:
    """Create 1-50 albums for the current user in one transaction."""
    albums = await AlbumService(db).create_albums(current_user.id, batch.albums)
    await db.commit()
    return build_batch_response(albums)


@router.get(
    "",
    response_model=AlbumListResponse,
    summary="List user's albums",
)
async def list_albums(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumListResponse:
    """Albums owned by the current user, newest first, with photo counts."""
    albums = await AlbumService(db).get_user_albums(current_user.id, skip=skip, limit=limit)
    return AlbumListResponse(data=albums)


@router.get(
    "/{album_id}",
    response_model=AlbumDetailResponse,
    summary="Get album details",
)
async def get_album(
    album_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumDetailResponse:
    album_service = AlbumService(db)
    album = await _get_owned_album(album_service, album_id, current_user)
    return AlbumDetailResponse(data=await album_service.get_album_response(album))


@router.patch(
    "/{album_id}",
    response_model=AlbumDetailResponse,
    summary="Update album",
)
async def update_album(
    album_id: str,
    update_data: AlbumUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumDetailResponse:
    """
    Update album metadata. Only provided fields change; an empty
    description clears it.
    """
    album_service = AlbumService(db)
    album = await _get_owned_album(album_service, album_id, current_user)
    album = await album_service.update_album(album, update_data)
    response = await album_service.get_album_response(album)
    await db.commit()
    return AlbumDetailResponse(data=response)


@router.delete(
    "/{album_id}",
    response_model=AlbumDeleteResponse,
    summary="Delete album",
)
async def delete_album(
    album_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AlbumDeleteResponse:
    """
    Delete an album, its photos and all of their stored objects.

    Objects that could not be deleted are listed in `data.storageCleanup`;
    the album is removed regardless.
    """
    album_service = AlbumService(db)
    album = await _get_owned_album(album_service, album_id, current_user)
    report = await album_service.delete_album(album)
    await db.commit()
    return build_delete_response(report)
