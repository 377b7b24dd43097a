"""
Dashboard router.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_active_user
from app.models.user import User
from app.schemas.dashboard import DashboardStatsResponse
from app.services.dashboard import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    summary="Dashboard statistics",
)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DashboardStatsResponse:
    """
    Album and photo counters for the current user.

    - **totalProjects**: all albums
    - **activeProjects**: albums in DRAFT or IN_PROGRESS
    - **totalPhotos** / **storageUsed**: photo count and total bytes
    """
    stats = await DashboardService(db).get_stats(current_user.id)
    return DashboardStatsResponse(data=stats)
