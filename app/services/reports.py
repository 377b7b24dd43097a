"""
Administrative CSV reports.
"""
import csv
import io
import logging
from datetime import date, datetime, timedelta
from typing import List, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.album import Album
from app.models.photo import Photo
from app.models.user import User

logger = logging.getLogger("app.reports")

REPORT_TYPES = ("users", "albums", "overview")


def _fmt_date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


class ReportService:
    """Builds CSV exports over all users, albums and photos."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def filename_for(report_type: str, today: date = None) -> str:
        today = today or datetime.utcnow().date()
        return f"{report_type}-{today.isoformat()}.csv"

    async def export_csv(self, report_type: str, period_days: int = 30) -> str:
        """
        Render a report as CSV text with a header row.

        Args:
            report_type: users | albums | overview
            period_days: window for the "new in period" rows of the overview

        Raises:
            ValueError: unknown report type
        """
        if report_type == "users":
            header, rows = await self._users_rows()
        elif report_type == "albums":
            header, rows = await self._albums_rows()
        elif report_type == "overview":
            header, rows = await self._overview_rows(period_days)
        else:
            raise ValueError(f"Unknown report type: {report_type}")

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(header)
        writer.writerows(rows)
        logger.info(
            "Report exported",
            extra={"event": "report", "report_type": report_type, "rows": len(rows)},
        )
        return buffer.getvalue()

    async def _users_rows(self) -> Tuple[List[str], List[Sequence]]:
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
        header = ["ID", "Email", "Name", "Plan", "Admin", "Created", "Last Login", "Albums", "Photos"]
        rows = [
            [
                user.id,
                user.email,
                user.name or "N/A",
                user.plan.value,
                "yes" if user.is_admin else "no",
                _fmt_date(user.created_at),
                _fmt_date(user.last_login) or "never",
                albums,
                photos,
            ]
            for user, albums, photos in result.all()
        ]
        return header, rows

    async def _albums_rows(self) -> Tuple[List[str], List[Sequence]]:
        photo_counts = (
            select(Photo.album_id, func.count(Photo.id).label("n"))
            .group_by(Photo.album_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Album, User.email, User.name, func.coalesce(photo_counts.c.n, 0))
            .join(User, User.id == Album.user_id)
            .outerjoin(photo_counts, photo_counts.c.album_id == Album.id)
            .order_by(Album.created_at.desc())
        )
        header = ["ID", "Name", "Owner", "Owner Email", "Status", "Created", "Updated", "Photos"]
        rows = [
            [
                album.id,
                album.name,
                owner_name or owner_email,
                owner_email,
                album.status.value,
                _fmt_date(album.created_at),
                _fmt_date(album.updated_at),
                photos,
            ]
            for album, owner_email, owner_name, photos in result.all()
        ]
        return header, rows

    async def _overview_rows(self, period_days: int) -> Tuple[List[str], List[Sequence]]:
        since = datetime.utcnow() - timedelta(days=period_days)

        async def count(column, *conditions) -> int:
            return (await self.db.scalar(select(func.count(column)).where(*conditions))) or 0

        rows: List[Sequence] = [
            ["Total users", await count(User.id)],
            ["Total albums", await count(Album.id)],
            ["Total photos", await count(Photo.id)],
            [f"New users ({period_days} days)", await count(User.id, User.created_at >= since)],
            [f"New albums ({period_days} days)", await count(Album.id, Album.created_at >= since)],
            [f"New photos ({period_days} days)", await count(Photo.id, Photo.created_at >= since)],
        ]

        by_status = await self.db.execute(
            select(Album.status, func.count(Album.id)).group_by(Album.status).order_by(Album.status)
        )
        rows.extend([f"Albums - {status.value}", n] for status, n in by_status.all())

        by_plan = await self.db.execute(
            select(User.plan, func.count(User.id)).group_by(User.plan).order_by(User.plan)
        )
        rows.extend([f"Users - {plan.value} plan", n] for plan, n in by_plan.all())

        return ["Metric", "Value"], rows
