"""
Account management for admins: listing, creation, updates, removal and
platform-wide statistics.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.album import Album, AlbumStatus
from app.models.photo import Photo
from app.models.user import User, UserPlan
from app.schemas.admin import (
    AdminStats,
    AdminStatsOverview,
    AdminUserCreate,
    AdminUserDetail,
    AdminUserSummary,
    AdminUserUpdate,
)
from app.schemas.storage import StorageDeletionReport
from app.services.album import AlbumService
from app.services.auth import normalize_email
from app.services.photo import PhotoService
from app.services.s3_storage import S3StorageService
from app.utils.logger import log_info, log_warning
from app.utils.security import hash_password

RECENT_DAYS = 30


class UserAdminService:
    """Admin-side operations over every account."""

    def __init__(self, db: AsyncSession, storage: Optional[S3StorageService] = None):
        self.db = db
        self.photo_service = PhotoService(db, storage=storage)

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        query = select(User.id).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return (await self.db.scalar(query)) is not None

    async def _counts(self, user_id: str) -> Tuple[int, int]:
        albums = await self.db.scalar(select(func.count(Album.id)).where(Album.user_id == user_id))
        photos = await self.db.scalar(select(func.count(Photo.id)).where(Photo.user_id == user_id))
        return albums or 0, photos or 0

    # ============== Read ==============

    async def list_users(self) -> List[AdminUserSummary]:
        """All accounts, newest first, with album and photo counts."""
        album_counts = (
            select(Album.user_id, func.count(Album.id).label("n"))
            .group_by(Album.user_id)
            .subquery()
        )
        photo_counts = (
            select(Photo.user_id, func.count(Photo.id).label("n"))
            .group_by(Photo.user_id)
            .subquery()
        )
        result = await self.db.execute(
            select(
                User,
                func.coalesce(album_counts.c.n, 0),
                func.coalesce(photo_counts.c.n, 0),
            )
            .outerjoin(album_counts, album_counts.c.user_id == User.id)
            .outerjoin(photo_counts, photo_counts.c.user_id == User.id)
            .order_by(User.created_at.desc())
        )
        users = []
        for user, albums, photos in result.all():
            summary = AdminUserSummary.model_validate(user)
            summary.album_count = albums
            summary.photo_count = photos
            users.append(summary)
        return users

    async def get_user_detail(self, user: User) -> AdminUserDetail:
        albums, photos = await self._counts(user.id)
        detail = AdminUserDetail.model_validate(user)
        detail.album_count = albums
        detail.photo_count = photos
        detail.storage_used = await self.photo_service.get_storage_used(user.id)
        detail.albums = await AlbumService(self.db).get_user_albums(user.id, limit=100)
        return detail

    # ============== Write ==============

    async def create_user(self, data: AdminUserCreate) -> User:
        """
        Raises:
            ValueError: If the email is already taken
        """
        email = normalize_email(data.email)
        if await self._email_taken(email):
            raise ValueError("Email already registered")

        user = User(
            email=email,
            name=data.name,
            hashed_password=hash_password(data.password),
            plan=data.plan,
            is_admin=data.is_admin,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        log_info("User created by admin", event="admin", user_id=user.id)
        return user

    async def update_user(self, user: User, data: AdminUserUpdate) -> User:
        """
        Raises:
            ValueError: If the new email belongs to another account
        """
        if data.email is not None:
            email = normalize_email(data.email)
            if await self._email_taken(email, exclude_id=user.id):
                raise ValueError("Email already registered")
            user.email = email
        if data.name is not None:
            user.name = data.name.strip() or None
        if data.plan is not None:
            user.plan = data.plan
        if data.is_admin is not None:
            user.is_admin = data.is_admin
        if data.is_active is not None:
            user.is_active = data.is_active

        await self.db.flush()
        await self.db.refresh(user)
        log_info(
            "User updated by admin",
            event="admin",
            user_id=user.id,
            fields=sorted(data.model_fields_set),
        )
        return user

    async def delete_user(self, user: User) -> StorageDeletionReport:
        """
        Remove an account with its albums and photos.

        Object sets are deleted first; storage failures are reported and do
        not stop the database deletion.
        """
        user_id = user.id
        report = await self.photo_service.delete_photos_by_user(user_id)

        await self.db.execute(delete(Album).where(Album.user_id == user_id))
        await self.db.delete(user)
        await self.db.flush()

        if report.has_errors:
            log_warning(
                "User deleted with storage errors",
                event="admin",
                user_id=user_id,
                error_count=report.summary.error_count,
            )
        else:
            log_info("User deleted", event="admin", user_id=user_id, total_photos=report.total_photos)
        return report

    # ============== Stats ==============

    async def get_stats(self, recent_days: int = RECENT_DAYS) -> AdminStats:
        since = datetime.utcnow() - timedelta(days=recent_days)

        async def count(column, *conditions) -> int:
            return (await self.db.scalar(select(func.count(column)).where(*conditions))) or 0

        overview = AdminStatsOverview(
            total_users=await count(User.id),
            total_albums=await count(Album.id),
            total_photos=await count(Photo.id),
            recent_albums=await count(Album.id, Album.created_at >= since),
            recent_users=await count(User.id, User.created_at >= since),
        )

        by_status = {status.value: 0 for status in AlbumStatus}
        result = await self.db.execute(select(Album.status, func.count(Album.id)).group_by(Album.status))
        by_status.update({status.value: n for status, n in result.all()})

        by_plan = {plan.value: 0 for plan in UserPlan}
        result = await self.db.execute(select(User.plan, func.count(User.id)).group_by(User.plan))
        by_plan.update({plan.value: n for plan, n in result.all()})

        return AdminStats(overview=overview, albums_by_status=by_status, users_by_plan=by_plan)
