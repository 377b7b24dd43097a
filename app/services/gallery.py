"""
Event gallery service.

Admins create events, assign users to them, add albums and upload photos.
Assigned users browse their events and download an event as a ZIP with one
folder per album.
"""
import asyncio
import base64
import io
import logging
import re
import zipfile
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.models.gallery import GalleryAlbum, GalleryPhoto, PhotoEvent, photo_event_users
from app.models.user import User
from app.schemas.gallery import (
    EventUserInfo,
    GalleryAlbumPreview,
    GalleryAlbumResponse,
    GalleryPhotoResponse,
    GalleryPhotoUpdate,
    PhotoEventCreate,
    PhotoEventDetail,
    PhotoEventResponse,
    PhotoEventUpdate,
    UserEventDetail,
)
from app.schemas.photo import PaginationInfo
from app.schemas.storage import DeletionResult
from app.services.image_processing import ImageProcessor
from app.services.photo import FileTooLargeError, UploadItem
from app.services.s3_storage import S3StorageService, StorageError, get_storage_service
from app.utils.logger import log_info, log_warning
from app.utils.prometheus_metrics import gallery_download_total, storage_objects_uploaded_total
from app.utils.storage_keys import generate_gallery_key

logger = logging.getLogger("app.gallery")

# 갤러리는 GIF도 허용 (원본 그대로 저장)
GALLERY_MIME_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

PREVIEW_PHOTOS = 3
MAX_PAGE_SIZE = 100

_UNSAFE_ZIP_CHARS = re.compile(r'[<>:"/\\|?*]')


def safe_zip_name(name: str) -> str:
    return _UNSAFE_ZIP_CHARS.sub("_", name or "").strip() or "untitled"


def _unique_name(name: str, used: set) -> str:
    candidate, n = name, 1
    while candidate in used:
        stem, dot, ext = name.rpartition(".")
        candidate = f"{stem}-{n}.{ext}" if dot else f"{name}-{n}"
        n += 1
    used.add(candidate)
    return candidate


def _build_zip(entries: Sequence[Tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for arcname, data in entries:
            archive.writestr(arcname, data)
    return buffer.getvalue()


class GalleryService:
    """Events, gallery albums and gallery photos."""

    def __init__(self, db: AsyncSession, storage: Optional[S3StorageService] = None):
        self.db = db
        self.storage = storage or get_storage_service()
        self.settings = get_settings()

    # ============== Events ==============

    @staticmethod
    def _event_fields(event: PhotoEvent) -> dict:
        # relationship 속성은 읽지 않음 (async lazy load 방지)
        return PhotoEventResponse.model_validate(event).model_dump(exclude={"album_count", "user_count"})

    async def _load_users(self, user_ids: List[str]) -> List[User]:
        """
        Raises:
            ValueError: when some ids do not exist
        """
        wanted = list(dict.fromkeys(user_ids))
        if not wanted:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(wanted)))
        users = {u.id: u for u in result.scalars().all()}
        missing = [uid for uid in wanted if uid not in users]
        if missing:
            raise ValueError(f"Unknown user id(s): {', '.join(missing)}")
        return [users[uid] for uid in wanted]

    async def get_event(self, event_id: str, user_id: Optional[str] = None) -> Optional[PhotoEvent]:
        """Event with its users loaded; with user_id, only if that user is assigned."""
        query = (
            select(PhotoEvent)
            .options(selectinload(PhotoEvent.users))
            .where(PhotoEvent.id == event_id)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            query = query.join(
                photo_event_users, photo_event_users.c.event_id == PhotoEvent.id
            ).where(photo_event_users.c.user_id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_events(self, user_id: Optional[str] = None) -> List[PhotoEventResponse]:
        """Newest first with album and user counts; with user_id, that user's events only."""
        album_counts = (
            select(GalleryAlbum.event_id, func.count(GalleryAlbum.id).label("n"))
            .group_by(GalleryAlbum.event_id)
            .subquery()
        )
        user_counts = (
            select(photo_event_users.c.event_id, func.count(photo_event_users.c.user_id).label("n"))
            .group_by(photo_event_users.c.event_id)
            .subquery()
        )
        query = (
            select(
                PhotoEvent,
                func.coalesce(album_counts.c.n, 0),
                func.coalesce(user_counts.c.n, 0),
            )
            .outerjoin(album_counts, album_counts.c.event_id == PhotoEvent.id)
            .outerjoin(user_counts, user_counts.c.event_id == PhotoEvent.id)
            .order_by(PhotoEvent.created_at.desc())
        )
        if user_id is not None:
            query = query.where(
                PhotoEvent.id.in_(
                    select(photo_event_users.c.event_id).where(photo_event_users.c.user_id == user_id)
                )
            )
        result = await self.db.execute(query)

        events = []
        for event, albums, users in result.all():
            response = PhotoEventResponse.model_validate(event)
            response.album_count = albums
            response.user_count = users
            events.append(response)
        return events

    async def create_event(self, data: PhotoEventCreate) -> PhotoEvent:
        users = await self._load_users(data.user_ids)
        event = PhotoEvent(name=data.name, description=data.description, users=users)
        self.db.add(event)
        await self.db.flush()
        log_info("Photo event created", event="gallery", event_id=event.id, users=len(users))
        return await self.get_event(event.id)

    async def update_event(self, event: PhotoEvent, data: PhotoEventUpdate) -> PhotoEvent:
        if data.name is not None:
            event.name = data.name
        if data.description is not None:
            event.description = data.description.strip() or None
        if data.user_ids is not None:
            event.users = await self._load_users(data.user_ids)
        await self.db.flush()
        return await self.get_event(event.id)

    async def get_event_detail(self, event: PhotoEvent) -> PhotoEventDetail:
        albums = await self.list_albums(event.id)
        return PhotoEventDetail(
            **self._event_fields(event),
            albums=albums,
            users=[EventUserInfo.model_validate(u) for u in event.users],
            album_count=len(albums),
            user_count=len(event.users),
        )

    async def get_user_event_detail(self, event: PhotoEvent) -> UserEventDetail:
        """Event page for an assigned user: albums with a few preview photos."""
        detail = UserEventDetail(**self._event_fields(event), user_count=len(event.users))
        for album in await self.list_albums(event.id):
            preview = GalleryAlbumPreview(**album.model_dump())
            preview.preview_photos = await self.get_album_photos(album.id, limit=PREVIEW_PHOTOS)
            detail.albums.append(preview)
        detail.album_count = len(detail.albums)
        return detail

    async def delete_event(self, event: PhotoEvent) -> DeletionResult:
        """
        Delete an event with its albums and photos.

        Objects are deleted first in batches; failures are returned and do not
        stop the database deletion.
        """
        event_id = event.id
        keys = list(
            (await self.db.execute(
                select(GalleryPhoto.s3_key)
                .join(GalleryAlbum, GalleryAlbum.id == GalleryPhoto.album_id)
                .where(GalleryAlbum.event_id == event_id, GalleryPhoto.s3_key.is_not(None))
            )).scalars().all()
        )
        result = await self.storage.delete_files(keys)

        await self.db.delete(event)
        await self.db.flush()

        if result.errors:
            log_warning(
                "Photo event deleted with storage errors",
                event="gallery",
                event_id=event_id,
                failed_count=len(result.errors),
            )
        else:
            log_info("Photo event deleted", event="gallery", event_id=event_id, deleted=len(result.deleted))
        return result

    # ============== Albums ==============

    async def get_album(self, album_id: str, event_id: Optional[str] = None) -> Optional[GalleryAlbum]:
        query = select(GalleryAlbum).where(GalleryAlbum.id == album_id)
        if event_id is not None:
            query = query.where(GalleryAlbum.event_id == event_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_album_response(self, album: GalleryAlbum) -> GalleryAlbumResponse:
        response = GalleryAlbumResponse.model_validate(album)
        response.photo_count = await self.db.scalar(
            select(func.count(GalleryPhoto.id)).where(GalleryPhoto.album_id == album.id)
        ) or 0
        return response

    async def list_albums(self, event_id: Optional[str] = None) -> List[GalleryAlbumResponse]:
        """Albums ordered by name, with photo counts."""
        photo_counts = (
            select(GalleryPhoto.album_id, func.count(GalleryPhoto.id).label("n"))
            .group_by(GalleryPhoto.album_id)
            .subquery()
        )
        query = (
            select(GalleryAlbum, func.coalesce(photo_counts.c.n, 0))
            .outerjoin(photo_counts, photo_counts.c.album_id == GalleryAlbum.id)
            .order_by(GalleryAlbum.name, GalleryAlbum.created_at)
        )
        if event_id is not None:
            query = query.where(GalleryAlbum.event_id == event_id)
        result = await self.db.execute(query)

        albums = []
        for album, count in result.all():
            response = GalleryAlbumResponse.model_validate(album)
            response.photo_count = count
            albums.append(response)
        return albums

    async def get_or_create_album(
        self,
        event: PhotoEvent,
        name: str,
        description: Optional[str] = None,
    ) -> Tuple[GalleryAlbum, bool]:
        """
        Album names are unique per event: an existing album with the same
        name is returned unchanged.

        Returns:
            (album, created)
        """
        existing = await self.db.execute(
            select(GalleryAlbum).where(GalleryAlbum.event_id == event.id, GalleryAlbum.name == name)
        )
        album = existing.scalar_one_or_none()
        if album is not None:
            return album, False

        album = GalleryAlbum(event_id=event.id, name=name, description=description)
        self.db.add(album)
        await self.db.flush()
        await self.db.refresh(album)
        log_info("Gallery album created", event="gallery", event_id=event.id, album_id=album.id)
        return album, True

    # ============== Photos ==============

    def validate_upload(self, item: UploadItem) -> str:
        """
        Returns:
            The file extension for the MIME type

        Raises:
            FileTooLargeError: over GALLERY_MAX_UPLOAD_SIZE_BYTES
            ValueError: empty file or unsupported type
        """
        if not item.data:
            raise ValueError("File is empty")
        extension = GALLERY_MIME_TYPES.get((item.content_type or "").lower())
        if extension is None:
            raise ValueError(
                f"Unsupported file type: {item.content_type or 'unknown'}. "
                "Allowed: JPEG, PNG, GIF, WEBP"
            )
        if len(item.data) > self.settings.gallery_max_upload_size_bytes:
            raise FileTooLargeError(
                f"File too large: {len(item.data)} bytes "
                f"(max {self.settings.gallery_max_upload_size_bytes})"
            )
        return extension

    async def upload_photo(self, album: GalleryAlbum, item: UploadItem) -> GalleryPhoto:
        """
        Store one gallery photo as uploaded (no resizing).

        Raises:
            FileTooLargeError, ValueError: validation or decoding failed
            StorageError: the object store rejected the write
        """
        extension = self.validate_upload(item)
        loop = asyncio.get_running_loop()
        # 디코딩 가능한 이미지인지만 확인
        await loop.run_in_executor(None, ImageProcessor().get_metadata, item.data)

        content_type = item.content_type.lower()
        if self.storage.is_configured:
            key = generate_gallery_key(album.event_id, album.id, item.filename, fallback_extension=extension)
            await self.storage.upload_file(item.data, key, content_type)
            storage_objects_uploaded_total.labels(variant="gallery").inc()
            s3_key: Optional[str] = key
            url = self.storage.public_url(key)
        else:
            s3_key = None
            url = f"data:{content_type};base64,{base64.b64encode(item.data).decode('ascii')}"

        photo = GalleryPhoto(
            album_id=album.id,
            filename=item.filename,
            s3_key=s3_key,
            url=url,
            size=len(item.data),
            mime_type=content_type,
        )
        self.db.add(photo)
        await self.db.flush()
        await self.db.refresh(photo)
        log_info(
            "Gallery photo uploaded",
            event="gallery",
            album_id=album.id,
            photo_id=photo.id,
            size=photo.size,
            storage="s3" if s3_key else "inline",
        )
        return photo

    async def get_photo(self, photo_id: str) -> Optional[GalleryPhoto]:
        return await self.db.get(GalleryPhoto, photo_id)

    async def list_photos(
        self,
        page: int = 1,
        limit: int = 20,
        album_id: Optional[str] = None,
        event_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[GalleryPhotoResponse], PaginationInfo]:
        """Newest uploads first; search matches filename or album name."""
        limit = min(limit, MAX_PAGE_SIZE)
        offset = (page - 1) * limit

        conditions = []
        if album_id:
            conditions.append(GalleryPhoto.album_id == album_id)
        if event_id:
            conditions.append(GalleryAlbum.event_id == event_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(GalleryPhoto.filename.ilike(pattern), GalleryAlbum.name.ilike(pattern)))

        base = select(GalleryPhoto).join(GalleryAlbum, GalleryAlbum.id == GalleryPhoto.album_id).where(*conditions)
        total = await self.db.scalar(select(func.count()).select_from(base.subquery())) or 0
        result = await self.db.execute(
            base.order_by(GalleryPhoto.uploaded_at.desc()).offset(offset).limit(limit)
        )
        photos = [GalleryPhotoResponse.model_validate(p) for p in result.scalars().all()]
        pagination = PaginationInfo(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(photos) < total,
        )
        return photos, pagination

    async def get_album_photos(self, album_id: str, limit: Optional[int] = None) -> List[GalleryPhotoResponse]:
        """Photos of one album, oldest upload first."""
        query = (
            select(GalleryPhoto)
            .where(GalleryPhoto.album_id == album_id)
            .order_by(GalleryPhoto.uploaded_at, GalleryPhoto.id)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [GalleryPhotoResponse.model_validate(p) for p in result.scalars().all()]

    async def update_photo(self, photo: GalleryPhoto, data: GalleryPhotoUpdate) -> GalleryPhoto:
        """Rename or move a photo. The stored object keeps its key."""
        if data.filename is not None:
            photo.filename = data.filename
        if data.album_id is not None:
            photo.album_id = data.album_id
        await self.db.flush()
        await self.db.refresh(photo)
        return photo

    async def delete_photo(self, photo: GalleryPhoto) -> bool:
        """
        Delete the object, then the row. The row is deleted even when the
        object could not be.

        Returns:
            False when the object deletion failed
        """
        storage_ok = True
        if photo.s3_key and self.storage.is_configured:
            storage_ok = await self.storage.delete_file(photo.s3_key)
            if not storage_ok:
                log_warning("Gallery object not deleted", event="gallery", photo_id=photo.id)
        await self.db.delete(photo)
        await self.db.flush()
        return storage_ok

    # ============== Download ==============

    async def _read_photo(self, photo: GalleryPhoto) -> Optional[bytes]:
        if photo.s3_key:
            try:
                return await self.storage.download_file(photo.s3_key)
            except StorageError:
                return None
        if photo.url.startswith("data:") and "," in photo.url:
            return base64.b64decode(photo.url.split(",", 1)[1])
        return None

    async def build_event_zip(self, event: PhotoEvent) -> bytes:
        """
        ZIP of every photo of the event, one folder per album.

        Photos that cannot be read are skipped (logged).

        Raises:
            ValueError: the event has no photos
        """
        albums = (await self.db.execute(
            select(GalleryAlbum).where(GalleryAlbum.event_id == event.id).order_by(GalleryAlbum.name)
        )).scalars().all()

        entries: List[Tuple[str, bytes]] = []
        total = skipped = 0
        for album in albums:
            folder = safe_zip_name(album.name)
            used: set = set()
            for photo in await self.get_album_photos(album.id):
                total += 1
                data = await self._read_photo(photo)
                if data is None:
                    skipped += 1
                    log_warning("Gallery photo skipped in ZIP", event="gallery", photo_id=photo.id)
                    continue
                entries.append((f"{folder}/{_unique_name(safe_zip_name(photo.filename), used)}", data))

        if total == 0:
            gallery_download_total.labels(result="empty").inc()
            raise ValueError("No photos to download")

        loop = asyncio.get_running_loop()
        archive = await loop.run_in_executor(None, _build_zip, entries)
        gallery_download_total.labels(result="partial" if skipped else "success").inc()
        log_info(
            "Gallery ZIP built",
            event="gallery",
            event_id=event.id,
            photos=len(entries),
            skipped=skipped,
            size=len(archive),
        )
        return archive

    @staticmethod
    def zip_filename(event: PhotoEvent) -> str:
        return f"{safe_zip_name(event.name)}_fotos.zip"
