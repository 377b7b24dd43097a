"""
Admin router: account management, platform statistics, cross-user photo
listing, album removal and CSV reports.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_admin_user
from app.models.user import User
from app.routers.albums import build_batch_response, build_delete_response
from app.schemas.admin import (
    AdminStatsResponse,
    AdminUserCreate,
    AdminUserDeleteResponse,
    AdminUserDetailResponse,
    AdminUserListResponse,
    AdminUserUpdate,
)
from app.schemas.album import AdminAlbumBatchCreate, AlbumBatchResponse, AlbumDeleteResponse
from app.schemas.photo import PhotoListResponse
from app.services.album import AlbumService
from app.services.photo import PhotoService
from app.services.reports import ReportService
from app.services.users import UserAdminService

logger = logging.getLogger("app.admin")

router = APIRouter(prefix="/admin", tags=["Admin"])


async def _get_user_or_404(service: UserAdminService, user_id: str) -> User:
    user = await service.get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ============== Users ==============

@router.get(
    "/users",
    response_model=AdminUserListResponse,
    summary="List all users",
)
async def admin_list_users(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminUserListResponse:
    """Newest first, with album and photo counts."""
    return AdminUserListResponse(data=await UserAdminService(db).list_users())


@router.post(
    "/users",
    response_model=AdminUserDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def admin_create_user(
    user_data: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminUserDetailResponse:
    service = UserAdminService(db)
    try:
        user = await service.create_user(user_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    detail = await service.get_user_detail(user)
    await db.commit()
    return AdminUserDetailResponse(data=detail)


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetailResponse,
    summary="Get a user with albums and storage usage",
)
async def admin_get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminUserDetailResponse:
    service = UserAdminService(db)
    user = await _get_user_or_404(service, user_id)
    return AdminUserDetailResponse(data=await service.get_user_detail(user))


@router.patch(
    "/users/{user_id}",
    response_model=AdminUserDetailResponse,
    summary="Update a user",
)
async def admin_update_user(
    user_id: str,
    update_data: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminUserDetailResponse:
    """
    - **email**, **name**, **plan**, **isAdmin**, **isActive**: only provided
      fields change
    """
    service = UserAdminService(db)
    user = await _get_user_or_404(service, user_id)
    try:
        user = await service.update_user(user, update_data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    detail = await service.get_user_detail(user)
    await db.commit()
    return AdminUserDetailResponse(data=detail)


@router.delete(
    "/users/{user_id}",
    response_model=AdminUserDeleteResponse,
    summary="Delete a user",
)
async def admin_delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminUserDeleteResponse:
    """Removes the account, its albums, its photos and their stored objects."""
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")

    service = UserAdminService(db)
    user = await _get_user_or_404(service, user_id)
    report = await service.delete_user(user)
    await db.commit()
    logger.info(
        "User deleted by admin",
        extra={"event": "admin", "admin_id": admin.id, "user_id": user_id},
    )
    return AdminUserDeleteResponse(
        message="User deleted successfully",
        storage_cleanup=report,
        warning=(
            f"{report.summary.error_count} photo(s) could not be fully removed from storage"
            if report.has_errors else None
        ),
    )


@router.get(
    "/stats",
    response_model=AdminStatsResponse,
    summary="Platform statistics",
)
async def admin_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AdminStatsResponse:
    """Totals, last-30-day counts, albums by status and users by plan."""
    return AdminStatsResponse(data=await UserAdminService(db).get_stats())


# ============== Photos / albums ==============

@router.get(
    "/photos",
    response_model=PhotoListResponse,
    summary="List photos of any user",
)
async def admin_list_photos(
    user_id: Optional[str] = Query(None, alias="userId"),
    album_id: Optional[str] = Query(None, alias="albumId"),
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> PhotoListResponse:
    """Without filters every photo is listed, newest first."""
    page = await PhotoService(db).list_photos(
        user_id=user_id,
        album_id=album_id,
        limit=limit,
        offset=offset,
    )
    return PhotoListResponse(data=page.data, pagination=page.pagination)


@router.delete(
    "/albums/{album_id}",
    response_model=AlbumDeleteResponse,
    summary="Delete any album",
)
async def admin_delete_album(
    album_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AlbumDeleteResponse:
    album_service = AlbumService(db)
    album = await album_service.get_album_by_id(album_id)
    if not album:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Album not found")

    owner_id = album.user_id
    report = await album_service.delete_album(album)
    await db.commit()
    logger.info(
        "Album deleted by admin",
        extra={"event": "admin", "admin_id": admin.id, "album_id": album_id, "owner_id": owner_id},
    )
    return build_delete_response(report)


@router.get(
    "/reports/export",
    summary="Export a CSV report",
    response_class=Response,
)
async def export_report(
    report_type: str = Query(..., alias="type", description="users | albums | overview"),
    period: int = Query(30, ge=1, le=3650, description="Days covered by the overview"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> Response:
    report_service = ReportService(db)
    try:
        content = await report_service.export_csv(report_type, period_days=period)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    filename = report_service.filename_for(report_type)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/albums/batch",
    response_model=AlbumBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create several albums for a user",
)
async def admin_create_albums(
    batch: AdminAlbumBatchCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
) -> AlbumBatchResponse:
    """
    - **userId**: owner of the new albums
    - **albums**: 1-50 album definitions
    """
    owner = await _get_user_or_404(UserAdminService(db), batch.user_id)
    albums = await AlbumService(db).create_albums(owner.id, batch.albums)
    await db.commit()
    logger.info(
        "Albums created by admin",
        extra={"event": "admin", "admin_id": admin.id, "owner_id": owner.id, "count": len(albums)},
    )
    return build_batch_response(albums)
