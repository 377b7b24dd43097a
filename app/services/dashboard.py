"""
Dashboard statistics for a single user.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.album import ACTIVE_ALBUM_STATUSES, Album
from app.models.photo import Photo
from app.schemas.dashboard import DashboardStats
from app.services.cache import dashboard_stats_tag, get_cache


class DashboardService:
    """Per-user counters shown on the dashboard, cached for PHOTO_CACHE_TTL_SECONDS."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.cache = get_cache()

    async def get_stats(self, user_id: str) -> DashboardStats:
        cache_key = f"dashboard-stats:{user_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        total_projects = await self.db.scalar(
            select(func.count(Album.id)).where(Album.user_id == user_id)
        )
        active_projects = await self.db.scalar(
            select(func.count(Album.id)).where(
                Album.user_id == user_id,
                Album.status.in_(ACTIVE_ALBUM_STATUSES),
            )
        )
        total_photos = await self.db.scalar(
            select(func.count(Photo.id)).where(Photo.user_id == user_id)
        )
        storage_used = await self.db.scalar(
            select(func.coalesce(func.sum(Photo.size), 0)).where(Photo.user_id == user_id)
        )

        stats = DashboardStats(
            total_projects=total_projects or 0,
            active_projects=active_projects or 0,
            total_photos=total_photos or 0,
            storage_used=int(storage_used or 0),
        )
        self.cache.set(cache_key, stats, tags=[dashboard_stats_tag(user_id)])
        return stats
