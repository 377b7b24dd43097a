"""
Photo service for managing photos.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.photo import Photo
from app.models.user import User, UserPlan
from app.schemas.photo import PaginationInfo, PhotoPage, PhotoResponse
from app.schemas.storage import StorageDeletionReport
from app.services.cache import (
    album_photos_tag,
    dashboard_stats_tag,
    get_cache,
    invalidate_for_session,
    user_albums_tag,
    user_photos_tag,
)
from app.services.image_processing import (
    ImageProcessor,
    extension_for_mime,
    is_valid_file_size,
    is_valid_image_format,
    sanitize_filename,
)
from app.services.s3_storage import S3StorageService, get_storage_service
from app.utils.prometheus_metrics import (
    photo_delete_total,
    photo_upload_file_size_bytes,
    photo_upload_total,
)
from app.utils.storage_keys import derive_thumbnail_key, generate_key

logger = logging.getLogger("app.photo")

# 모든 사진 목록 캐시에 붙는 태그 (관리자 전체 목록 포함)
ALL_PHOTOS_TAG = "photos"

MAX_PAGE_SIZE = 100


class FileTooLargeError(ValueError):
    """Upload exceeds MAX_UPLOAD_SIZE_BYTES."""


@dataclass
class UploadItem:
    """One file of a multipart upload."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class BatchUploadResult:
    photos: List[Photo] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total: int = 0

    @property
    def message(self) -> str:
        return f"{len(self.photos)} of {self.total} photo(s) uploaded"


class PhotoService:
    """
    Service for handling photo operations.

    Storage: three S3 objects per photo when S3 is configured, otherwise
    inline data: URLs (Base64 fallback, development only).
    """

    def __init__(self, db: AsyncSession, storage: Optional[S3StorageService] = None):
        self.db = db
        self.storage = storage or get_storage_service()
        self.processor = ImageProcessor()
        self.cache = get_cache()
        self.settings = get_settings()

    # ============== Validation ==============

    def validate_upload(self, item: UploadItem) -> None:
        """
        Reject a file before any I/O.

        Raises:
            FileTooLargeError: over the configured maximum
            ValueError: empty file or unsupported MIME type
        """
        if not item.data:
            raise ValueError("File is empty")
        if not is_valid_image_format(item.content_type):
            raise ValueError(
                f"Unsupported file type: {item.content_type or 'unknown'}. "
                "Allowed: JPEG, PNG, WEBP"
            )
        if not is_valid_file_size(len(item.data), self.settings.max_upload_size_bytes):
            raise FileTooLargeError(
                f"File too large: {len(item.data)} bytes "
                f"(max {self.settings.max_upload_size_bytes})"
            )

    def quota_for(self, user: User) -> int:
        """Storage quota in bytes for the user's plan (0 = unlimited)."""
        return {
            UserPlan.FREE: self.settings.plan_quota_free_bytes,
            UserPlan.PRO: self.settings.plan_quota_pro_bytes,
            UserPlan.ENTERPRISE: self.settings.plan_quota_enterprise_bytes,
        }.get(user.plan, self.settings.plan_quota_free_bytes)

    async def get_storage_used(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Photo.size), 0)).where(Photo.user_id == user_id)
        )
        return int(result.scalar() or 0)

    def _check_quota(self, user: User, used: int, incoming: int) -> None:
        quota = self.quota_for(user)
        if quota and used + incoming > quota:
            raise ValueError(
                f"Storage quota exceeded for {user.plan.value} plan "
                f"({used + incoming} of {quota} bytes)"
            )

    # ============== Upload ==============

    async def _process_and_store(
        self,
        user_id: str,
        item: UploadItem,
        album_id: Optional[str],
    ) -> Dict[str, Any]:
        """
        Process the image and write it to storage. No database access, so
        several of these may run concurrently.

        Returns:
            Column values for the Photo row
        """
        loop = asyncio.get_running_loop()
        source = await loop.run_in_executor(None, self.processor.get_metadata, item.data)

        if self.storage.is_configured:
            original = await loop.run_in_executor(None, self.processor.process_image, item.data)
            fmt = original.metadata.format
            thumbnail = await loop.run_in_executor(
                None, self.processor.create_thumbnail, item.data, fmt
            )
            medium = await loop.run_in_executor(
                None, self.processor.create_medium, item.data, fmt
            )
            key = generate_key(
                user_id,
                item.filename,
                album_id=album_id,
                fallback_extension=extension_for_mime(original.content_type),
            )
            await self.storage.upload_photo_variants(
                key, original.data, thumbnail.data, medium.data, original.content_type
            )
            s3_key: Optional[str] = key
            url = self.storage.public_url(key)
            thumbnail_url = self.storage.public_url(derive_thumbnail_key(key))
        else:
            # Base64 fallback: S3 미설정 시 data: URL로 DB에 저장
            original = await loop.run_in_executor(None, self.processor.create_fallback, item.data)
            thumbnail = await loop.run_in_executor(
                None, self.processor.create_thumbnail, item.data, original.metadata.format
            )
            s3_key = None
            url = original.to_data_url()
            thumbnail_url = thumbnail.to_data_url()

        return {
            "user_id": user_id,
            "album_id": album_id,
            "filename": sanitize_filename(item.filename),
            "original_filename": item.filename,
            "mime_type": original.content_type,
            "size": len(item.data),
            "width": original.metadata.width,
            "height": original.metadata.height,
            "s3_key": s3_key,
            "url": url,
            "thumbnail_url": thumbnail_url,
            "is_s3_stored": s3_key is not None,
            "photo_metadata": {
                "originalWidth": source.width,
                "originalHeight": source.height,
                "originalFormat": source.format,
                "processedSize": original.metadata.size,
            },
        }

    async def _insert(self, values: Dict[str, Any]) -> Photo:
        photo = Photo(**values)
        self.db.add(photo)
        await self.db.flush()
        await self.db.refresh(photo)
        return photo

    async def upload_photo(
        self,
        user: User,
        item: UploadItem,
        album_id: Optional[str] = None,
    ) -> Photo:
        """
        Upload one photo: original, thumbnail, medium, then the database row.

        Args:
            user: Owner of the photo
            item: File name, declared MIME type and bytes
            album_id: Album to attach the photo to (ownership checked by caller)

        Returns:
            Created Photo model

        Raises:
            ValueError: validation, quota, image or storage failure
        """
        self.validate_upload(item)
        self._check_quota(user, await self.get_storage_used(user.id), len(item.data))

        storage_kind = "s3" if self.storage.is_configured else "inline"
        try:
            values = await self._process_and_store(user.id, item, album_id)
        except ValueError:
            photo_upload_total.labels(storage=storage_kind, result="failure").inc()
            raise

        photo = await self._insert(values)
        photo_upload_total.labels(storage=storage_kind, result="success").inc()
        photo_upload_file_size_bytes.observe(photo.size)
        self._invalidate(user.id, album_id)
        logger.info(
            "Photo uploaded",
            extra={"event": "photo", "photo_id": photo.id, "user_id": user.id, "s3": photo.is_s3_stored},
        )
        return photo

    async def upload_photos(
        self,
        user: User,
        items: List[UploadItem],
        album_id: Optional[str] = None,
    ) -> BatchUploadResult:
        """
        Upload several photos. One file's failure never aborts the others.

        Image processing and storage writes run concurrently (bounded by
        UPLOAD_CONCURRENCY); database inserts run one after another on this
        session.
        """
        result = BatchUploadResult(total=len(items))
        storage_kind = "s3" if self.storage.is_configured else "inline"

        accepted: List[UploadItem] = []
        used = await self.get_storage_used(user.id)
        for item in items:
            try:
                self.validate_upload(item)
                self._check_quota(user, used, len(item.data))
            except ValueError as e:
                result.errors.append(f"{item.filename}: {e}")
                continue
            used += len(item.data)
            accepted.append(item)

        semaphore = asyncio.Semaphore(self.settings.upload_concurrency)

        async def _bounded(item: UploadItem) -> Dict[str, Any]:
            async with semaphore:
                return await self._process_and_store(user.id, item, album_id)

        outcomes = await asyncio.gather(
            *(_bounded(item) for item in accepted), return_exceptions=True
        )

        for item, outcome in zip(accepted, outcomes):
            if isinstance(outcome, ValueError):
                photo_upload_total.labels(storage=storage_kind, result="failure").inc()
                result.errors.append(f"{item.filename}: {outcome}")
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            photo = await self._insert(outcome)
            photo_upload_total.labels(storage=storage_kind, result="success").inc()
            photo_upload_file_size_bytes.observe(photo.size)
            result.photos.append(photo)

        if result.photos:
            self._invalidate(user.id, album_id)
        if result.errors:
            logger.warning(
                "Batch upload partially failed",
                extra={
                    "event": "photo",
                    "user_id": user.id,
                    "uploaded": len(result.photos),
                    "failed": len(result.errors),
                },
            )
        else:
            logger.info(
                "Batch upload",
                extra={"event": "photo", "user_id": user.id, "uploaded": len(result.photos)},
            )
        return result

    # ============== Read ==============

    async def get_photo_by_id(
        self,
        photo_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Photo]:
        """
        Get a photo by ID.

        Args:
            photo_id: Photo ID
            user_id: If provided, only return if user owns the photo
        """
        query = select(Photo).where(Photo.id == photo_id)

        if user_id is not None:
            query = query.where(Photo.user_id == user_id)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_photos(
        self,
        user_id: Optional[str] = None,
        album_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> PhotoPage:
        """
        Newest-first page of photos filtered by owner and/or album.

        Cached for PHOTO_CACHE_TTL_SECONDS; uploads, moves and deletes drop
        the matching entries.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)

        cache_key = f"photos:u={user_id}:a={album_id}:l={limit}:o={offset}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        conditions = []
        if user_id is not None:
            conditions.append(Photo.user_id == user_id)
        if album_id is not None:
            conditions.append(Photo.album_id == album_id)

        total_result = await self.db.execute(
            select(func.count(Photo.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Photo)
            .where(*conditions)
            .order_by(Photo.created_at.desc(), Photo.id.desc())
            .offset(offset)
            .limit(limit)
        )
        data = [PhotoResponse.model_validate(p) for p in result.scalars().all()]

        page = PhotoPage(
            data=data,
            pagination=PaginationInfo(
                total=total,
                limit=limit,
                offset=offset,
                has_more=offset + len(data) < total,
            ),
        )

        tags = [ALL_PHOTOS_TAG]
        if user_id is not None:
            tags.append(user_photos_tag(user_id))
        if album_id is not None:
            tags.append(album_photos_tag(album_id))
        self.cache.set(cache_key, page, tags=tags)
        return page

    def get_photo_with_url(self, photo: Photo) -> PhotoResponse:
        return PhotoResponse.model_validate(photo)

    async def get_photo_download_url(self, photo: Photo) -> Tuple[str, Optional[int]]:
        """
        URL for downloading the original.

        Returns:
            (url, expires_in): presigned GET for S3-stored photos, otherwise
            the stored URL with no expiry
        """
        if photo.has_object_set and self.storage.is_configured:
            expires_in = self.settings.s3_presigned_url_expire_seconds
            url = await self.storage.generate_presigned_download_url(photo.s3_key, expires_in)
            return url, expires_in
        return photo.url, None

    # ============== Write ==============

    async def move_photo(self, photo: Photo, album_id: Optional[str]) -> Photo:
        """Move a photo into another album, or out of any album (None)."""
        previous_album_id = photo.album_id
        photo.album_id = album_id
        await self.db.flush()
        await self.db.refresh(photo)
        self._invalidate(photo.user_id, previous_album_id, album_id)
        return photo

    async def delete_photo(self, photo: Photo) -> StorageDeletionReport:
        """
        Delete a photo: its three objects in one batched request, then the row.

        The row is deleted regardless of the storage outcome (orphaned objects
        are logged). The report counts this one photo as success, error or
        skipped (inline photo or storage not configured).
        """
        report = await self.storage.delete_album_files([photo])
        if report.has_errors:
            logger.warning(
                "Photo storage delete failed",
                extra={
                    "event": "photo",
                    "photo_id": photo.id,
                    "failed_keys": [e.key for e in report.errors],
                },
            )

        user_id, album_id = photo.user_id, photo.album_id
        await self.db.delete(photo)
        await self.db.flush()
        self._invalidate(user_id, album_id)
        photo_delete_total.labels(result="partial" if report.has_errors else "success").inc()
        return report

    async def delete_photos_by_album(self, album_id: str) -> StorageDeletionReport:
        """Delete every photo of an album: object sets first, then rows."""
        result = await self.db.execute(select(Photo).where(Photo.album_id == album_id))
        photos = list(result.scalars().all())

        report = await self.storage.delete_album_files(photos)

        await self.db.execute(delete(Photo).where(Photo.album_id == album_id))
        await self.db.flush()
        for user_id in {p.user_id for p in photos}:
            self._invalidate(user_id, album_id)
        return report

    async def delete_photos_by_user(self, user_id: str) -> StorageDeletionReport:
        """Delete every photo of a user (account removal): object sets first, then rows."""
        result = await self.db.execute(select(Photo).where(Photo.user_id == user_id))
        photos = list(result.scalars().all())

        report = await self.storage.delete_album_files(photos)

        await self.db.execute(delete(Photo).where(Photo.user_id == user_id))
        await self.db.flush()
        self._invalidate(user_id, *{p.album_id for p in photos})
        return report

    def _invalidate(self, user_id: str, *album_ids: Optional[str]) -> None:
        tags = [
            ALL_PHOTOS_TAG,
            user_photos_tag(user_id),
            dashboard_stats_tag(user_id),
            user_albums_tag(user_id),
        ]
        tags.extend(album_photos_tag(a) for a in album_ids if a)
        invalidate_for_session(self.db, *tags)
