"""
Dashboard statistics schemas.
"""
from app.schemas.base import CamelModel


class DashboardStats(CamelModel):
    total_projects: int = 0
    active_projects: int = 0
    total_photos: int = 0
    storage_used: int = 0


class DashboardStatsResponse(CamelModel):
    success: bool = True
    data: DashboardStats
