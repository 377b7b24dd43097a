"""
S3 object storage service.
Handles photo variant upload, batched deletion, presigned download URLs,
and public URL composition.

Every stored photo is three objects (original, thumbnail, medium) addressed
through the original's key; see app.utils.storage_keys.

boto3 calls are blocking and run in the default thread-pool executor.
"""
import asyncio
import logging
from functools import partial
from typing import Dict, Iterable, List, Optional, Protocol

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings, get_settings
from app.schemas.storage import (
    DeletionError,
    DeletionResult,
    DeletionSummary,
    StorageDeletionReport,
    UploadedObjects,
)
from app.utils.logger import log_error, log_warning
from app.utils.prometheus_metrics import (
    record_external_request,
    storage_delete_batches_total,
    storage_objects_deleted_total,
    storage_objects_failed_total,
    storage_objects_uploaded_total,
    storage_photos_skipped_total,
)
from app.utils.storage_keys import derive_variant_keys

logger = logging.getLogger("app.storage")

# S3 DeleteObjects API 요청당 최대 키 수
MAX_DELETE_BATCH = 1000


class StorageError(ValueError):
    """Object storage operation failed."""


class StoredPhoto(Protocol):
    """Anything carrying the storage fields of a Photo row."""

    s3_key: Optional[str]
    is_s3_stored: bool


class S3StorageService:
    """
    Service for interacting with S3-compatible object storage.

    S3 모드 조건: AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_REGION,
    AWS_S3_BUCKET 네 값이 모두 설정된 경우. 하나라도 없으면 업로드는 Base64
    fallback, 삭제는 네트워크 호출 없이 skip.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._s3_client = None

    @property
    def is_configured(self) -> bool:
        return self.settings.is_s3_configured

    @property
    def bucket(self) -> str:
        return self.settings.aws_s3_bucket

    def _get_s3_client(self):
        """
        Get or create the boto3 S3 client.

        Returns:
            Configured boto3 S3 client
        """
        if self._s3_client is not None:
            return self._s3_client

        if not self.is_configured:
            raise StorageError("S3 storage is not configured")

        endpoint = (self.settings.aws_endpoint_url or "").strip() or None
        self._s3_client = boto3.client(
            "s3",
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
            region_name=self.settings.aws_region,
            endpoint_url=endpoint,
            config=Config(
                signature_version="s3v4",
                # 커스텀 엔드포인트(MinIO 등)는 path-style
                s3={"addressing_style": "path" if endpoint else "auto"},
            ),
        )
        return self._s3_client

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    def public_url(self, key: str) -> str:
        """Public URL of an object (virtual-host style, or {endpoint}/{bucket}/{key})."""
        endpoint = (self.settings.aws_endpoint_url or "").strip()
        if endpoint:
            return f"{endpoint.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.settings.aws_region}.amazonaws.com/{key}"

    # ============== Upload ==============

    async def upload_file(self, body: bytes, key: str, content_type: str) -> str:
        """
        Upload one object.

        Args:
            body: Object content
            key: Object key
            content_type: MIME type stored with the object

        Returns:
            The object key

        Raises:
            StorageError: when the store rejects the write
        """
        client = self._get_s3_client()
        try:
            async with record_external_request("s3"):
                await self._run(
                    client.put_object,
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
        except (ClientError, BotoCoreError) as e:
            log_error(
                "File upload failed",
                event="storage",
                object=key,
                error_type=type(e).__name__,
                error_message=str(e)[:200],
            )
            raise StorageError(f"Failed to upload {key}: {e}") from e
        return key

    async def upload_photo_variants(
        self,
        key: str,
        original: bytes,
        thumbnail: bytes,
        medium: bytes,
        content_type: str,
    ) -> UploadedObjects:
        """
        Upload the three objects of a photo in order: original, thumbnail, medium.

        Not transactional: a failure on a later variant leaves the earlier
        objects in place and raises StorageError.
        """
        original_key, thumbnail_key, medium_key = derive_variant_keys(key)
        for variant, variant_key, body in (
            ("original", original_key, original),
            ("thumbnail", thumbnail_key, thumbnail),
            ("medium", medium_key, medium),
        ):
            await self.upload_file(body, variant_key, content_type)
            storage_objects_uploaded_total.labels(variant=variant).inc()
        return UploadedObjects(
            original=original_key, thumbnail=thumbnail_key, medium=medium_key
        )

    # ============== Delete ==============

    async def delete_file(self, key: str) -> bool:
        """Delete a single object. Returns False on failure (logged)."""
        result = await self.delete_files([key])
        return key in result.deleted

    async def delete_files(self, keys: List[str]) -> DeletionResult:
        """
        Delete objects with DeleteObjects in sequential batches.

        Keys listed under Deleted are successes, Errors entries become
        {key, error}. If a whole batch request fails, every key of that batch
        is recorded as an error. Empty input makes no calls.
        """
        result = DeletionResult()
        if not keys:
            return result
        if not self.is_configured:
            log_warning(
                "S3 not configured, skipping object deletion",
                event="storage",
                keys=len(keys),
            )
            return result

        client = self._get_s3_client()
        batch_size = min(self.settings.delete_batch_size, MAX_DELETE_BATCH)

        for start in range(0, len(keys), batch_size):
            batch = keys[start:start + batch_size]
            try:
                async with record_external_request("s3"):
                    response = await self._run(
                        client.delete_objects,
                        Bucket=self.bucket,
                        Delete={
                            "Objects": [{"Key": k} for k in batch],
                            "Quiet": False,
                        },
                    )
            except (ClientError, BotoCoreError) as e:
                storage_delete_batches_total.labels(result="failure").inc()
                storage_objects_failed_total.inc(len(batch))
                log_error(
                    "S3 batch deletion failed",
                    event="storage",
                    keys=len(batch),
                    error_type=type(e).__name__,
                    error_message=str(e)[:200],
                )
                result.errors.extend(DeletionError(key=k, error=str(e)) for k in batch)
                continue

            storage_delete_batches_total.labels(result="success").inc()
            deleted = [obj["Key"] for obj in response.get("Deleted", [])]
            errors = [
                DeletionError(
                    key=obj.get("Key", ""),
                    error=obj.get("Message") or obj.get("Code") or "Unknown error",
                )
                for obj in response.get("Errors", [])
            ]
            result.deleted.extend(deleted)
            result.errors.extend(errors)
            storage_objects_deleted_total.inc(len(deleted))
            if errors:
                storage_objects_failed_total.inc(len(errors))

        if result.errors:
            log_warning(
                "S3 deletion completed with errors",
                event="storage",
                deleted_count=len(result.deleted),
                failed_count=len(result.errors),
            )
        return result

    async def delete_photo_variants(self, s3_key: Optional[str]) -> DeletionResult:
        """Delete original, thumbnail and medium of one photo in a single request."""
        if not s3_key:
            return DeletionResult()
        return await self.delete_files(derive_variant_keys(s3_key))

    async def delete_album_files(self, photos: Iterable[StoredPhoto]) -> StorageDeletionReport:
        """
        Delete the object sets of many photos (album deletion).

        Collects the three keys of every S3-stored photo, then deletes them in
        batches. Summary counts photos: success when all three keys were
        confirmed deleted, error otherwise, skipped when the photo has no
        object set or storage is not configured.
        """
        photos = list(photos)
        report = StorageDeletionReport(total_photos=len(photos))

        if not self.is_configured:
            report.summary = DeletionSummary(skipped_count=len(photos))
            storage_photos_skipped_total.inc(len(photos))
            logger.info(
                "S3 not configured, skipping album file deletion",
                extra={"event": "storage", "photos": len(photos)},
            )
            return report

        photo_keys: Dict[str, List[str]] = {}
        skipped = 0
        for photo in photos:
            if photo.is_s3_stored and photo.s3_key:
                photo_keys[photo.s3_key] = derive_variant_keys(photo.s3_key)
            else:
                skipped += 1

        all_keys = [k for keys in photo_keys.values() for k in keys]
        result = await self.delete_files(all_keys)

        deleted = set(result.deleted)
        success = sum(
            1 for keys in photo_keys.values() if all(k in deleted for k in keys)
        )
        report.deleted_files = list(result.deleted)
        report.errors = result.errors
        report.summary = DeletionSummary(
            success_count=success,
            error_count=len(photo_keys) - success,
            skipped_count=skipped,
        )
        if skipped:
            storage_photos_skipped_total.inc(skipped)

        logger.info(
            "Photo object sets deleted",
            extra={
                "event": "storage",
                "total_photos": report.total_photos,
                "deleted_files": len(report.deleted_files),
                "success_count": report.summary.success_count,
                "error_count": report.summary.error_count,
                "skipped_count": report.summary.skipped_count,
            },
        )
        return report

    # ============== Download ==============

    async def download_file(self, key: str) -> bytes:
        """
        Read one object into memory.

        Raises:
            StorageError: when storage is not configured or the read fails
        """
        client = self._get_s3_client()
        try:
            async with record_external_request("s3"):
                response = await self._run(client.get_object, Bucket=self.bucket, Key=key)
                return await self._run(response["Body"].read)
        except (ClientError, BotoCoreError) as e:
            log_error(
                "File download failed",
                event="storage",
                object=key,
                error_type=type(e).__name__,
                error_message=str(e)[:200],
            )
            raise StorageError(f"Failed to download {key}: {e}") from e

    async def generate_presigned_download_url(
        self, key: str, expires_in: Optional[int] = None
    ) -> str:
        """
        Presigned GET URL for an object.

        Raises:
            StorageError: when storage is not configured or signing fails
        """
        client = self._get_s3_client()
        expires_in = expires_in or self.settings.s3_presigned_url_expire_seconds
        try:
            return await self._run(
                client.generate_presigned_url,
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Presigned URL generation failed",
                exc_info=e,
                extra={"event": "storage", "object": key},
            )
            raise StorageError(f"Failed to generate presigned URL: {e}") from e


# Singleton instance
_storage_service: Optional[S3StorageService] = None


def get_storage_service() -> S3StorageService:
    """Get or create storage service singleton."""
    global _storage_service
    if _storage_service is None:
        _storage_service = S3StorageService()
    return _storage_service


def reset_storage_service() -> None:
    """Drop the cached service (and its boto3 client)."""
    global _storage_service
    _storage_service = None
