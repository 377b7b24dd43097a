"""
Album service for managing albums and their photo storage cleanup.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.album import Album
from app.models.photo import Photo
from app.models.user import User
from app.schemas.album import AlbumCreate, AlbumResponse, AlbumUpdate
from app.schemas.storage import StorageDeletionReport
from app.services.cache import (
    dashboard_stats_tag,
    get_cache,
    invalidate_for_session,
    user_albums_tag,
)
from app.services.photo import PhotoService
from app.services.s3_storage import S3StorageService
from app.utils.logger import log_info, log_warning
from app.utils.prometheus_metrics import album_operations_total

logger = logging.getLogger("app.album")


class AlbumService:
    """
    Service for handling album operations.
    Deleting an album also deletes the stored objects of its photos.
    """

    def __init__(self, db: AsyncSession, storage: Optional[S3StorageService] = None):
        self.db = db
        self.photo_service = PhotoService(db, storage=storage)
        self.cache = get_cache()

    # ============== Album CRUD ==============

    async def create_album(
        self,
        user: User,
        album_data: AlbumCreate,
    ) -> Album:
        """
        Create a new album.

        Args:
            user: Owner of the album
            album_data: Album creation data

        Returns:
            Created Album model
        """
        album = Album(
            user_id=user.id,
            name=album_data.name,
            description=album_data.description,
            status=album_data.status,
            album_size=album_data.album_size,
        )

        self.db.add(album)
        await self.db.flush()
        await self.db.refresh(album)
        album_operations_total.labels(operation="create", result="success").inc()
        self._invalidate(user.id)
        return album

    async def create_albums(
        self,
        user_id: str,
        items: List[AlbumCreate],
    ) -> List[AlbumResponse]:
        """
        Create several albums for one owner in a single flush.

        Returns:
            The new albums in request order, each with photo_count 0
        """
        albums = [
            Album(
                user_id=user_id,
                name=item.name,
                description=item.description,
                status=item.status,
                album_size=item.album_size,
            )
            for item in items
        ]
        self.db.add_all(albums)
        await self.db.flush()
        for album in albums:
            await self.db.refresh(album)

        album_operations_total.labels(operation="create", result="success").inc(len(albums))
        self._invalidate(user_id)
        log_info("Albums created", event="album", user_id=user_id, count=len(albums))
        return [self._to_response(album, 0) for album in albums]

    async def get_album_by_id(
        self,
        album_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Album]:
        """
        Get an album by ID.

        Args:
            album_id: Album ID
            user_id: If provided, only return if user owns the album

        Returns:
            Album if found, None otherwise
        """
        query = select(Album).where(Album.id == album_id)

        if user_id is not None:
            query = query.where(Album.user_id == user_id)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_user_albums(
        self,
        user_id: str,
        skip: int = 0,
        limit: int = 50,
    ) -> List[AlbumResponse]:
        """
        Newest-first albums of a user with photo counts (cached).
        """
        cache_key = f"albums:u={user_id}:s={skip}:l={limit}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        photo_counts = (
            select(Photo.album_id, func.count(Photo.id).label("photo_count"))
            .group_by(Photo.album_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Album, func.coalesce(photo_counts.c.photo_count, 0))
            .outerjoin(photo_counts, photo_counts.c.album_id == Album.id)
            .where(Album.user_id == user_id)
            .order_by(Album.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        albums = [self._to_response(album, count) for album, count in result.all()]

        self.cache.set(cache_key, albums, tags=[user_albums_tag(user_id)])
        return albums

    async def get_album_photo_count(self, album_id: str) -> int:
        """Get the number of photos in an album."""
        result = await self.db.execute(
            select(func.count(Photo.id))
            .where(Photo.album_id == album_id)
        )
        return result.scalar() or 0

    async def get_album_response(self, album: Album) -> AlbumResponse:
        return self._to_response(album, await self.get_album_photo_count(album.id))

    async def update_album(
        self,
        album: Album,
        update_data: AlbumUpdate,
    ) -> Album:
        """
        Update album metadata.

        Args:
            album: Album to update
            update_data: Update data

        Returns:
            Updated Album model
        """
        if update_data.name is not None:
            album.name = update_data.name
        if update_data.description is not None:
            # 빈 문자열이면 description 삭제
            album.description = update_data.description.strip() or None
        if update_data.status is not None:
            album.status = update_data.status
        if update_data.album_size is not None:
            album.album_size = update_data.album_size or None

        await self.db.flush()
        await self.db.refresh(album)
        album_operations_total.labels(operation="update", result="success").inc()
        self._invalidate(album.user_id)
        return album

    async def delete_album(self, album: Album) -> StorageDeletionReport:
        """
        Delete an album with its photos.

        Order: collect photos -> delete their objects in batches -> delete
        photo rows and the album row. Storage failures do not stop the
        database deletion; they are returned in the report.

        Returns:
            StorageDeletionReport of the object cleanup
        """
        album_id, user_id = album.id, album.user_id
        report = await self.photo_service.delete_photos_by_album(album_id)

        await self.db.delete(album)
        await self.db.flush()
        self._invalidate(user_id)

        if report.has_errors:
            album_operations_total.labels(operation="delete", result="partial").inc()
            log_warning(
                "Album deleted with storage errors",
                event="album",
                album_id=album_id,
                user_id=user_id,
                error_count=report.summary.error_count,
                failed_keys=len(report.errors),
            )
        else:
            album_operations_total.labels(operation="delete", result="success").inc()
            log_info(
                "Album deleted",
                event="album",
                album_id=album_id,
                user_id=user_id,
                total_photos=report.total_photos,
                deleted_files=len(report.deleted_files),
            )
        return report

    @staticmethod
    def _to_response(album: Album, photo_count: int) -> AlbumResponse:
        response = AlbumResponse.model_validate(album)
        response.photo_count = photo_count
        return response

    def _invalidate(self, user_id: str) -> None:
        invalidate_for_session(self.db, user_albums_tag(user_id), dashboard_stats_tag(user_id))
