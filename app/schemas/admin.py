"""
Admin schemas: account management and platform statistics.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import EmailStr, Field

from app.models.user import UserPlan
from app.schemas.album import AlbumResponse
from app.schemas.base import CamelModel
from app.schemas.storage import StorageDeletionReport
from app.schemas.user import UserResponse


class AdminUserCreate(CamelModel):
    """Account created by an admin; plan and admin flag may be set directly."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    name: Optional[str] = Field(None, max_length=100)
    plan: UserPlan = UserPlan.FREE
    is_admin: bool = False


class AdminUserUpdate(CamelModel):
    """Only provided fields change."""

    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=100)
    plan: Optional[UserPlan] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None


class AdminUserSummary(UserResponse):
    last_login: Optional[datetime] = None
    album_count: int = 0
    photo_count: int = 0


class AdminUserDetail(AdminUserSummary):
    storage_used: int = 0
    albums: List[AlbumResponse] = Field(default_factory=list)


class AdminUserListResponse(CamelModel):
    success: bool = True
    data: List[AdminUserSummary]


class AdminUserDetailResponse(CamelModel):
    success: bool = True
    data: AdminUserDetail


class AdminUserDeleteResponse(CamelModel):
    """Account removed with its albums and photos."""

    success: bool = True
    message: str
    storage_cleanup: StorageDeletionReport
    warning: Optional[str] = None


class AdminStatsOverview(CamelModel):
    total_users: int
    total_albums: int
    total_photos: int
    # 최근 30일
    recent_albums: int
    recent_users: int


class AdminStats(CamelModel):
    overview: AdminStatsOverview
    albums_by_status: Dict[str, int]
    users_by_plan: Dict[str, int]


class AdminStatsResponse(CamelModel):
    success: bool = True
    data: AdminStats
