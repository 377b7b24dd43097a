"""
Object storage result schemas (batch delete results and cleanup reports).
"""
from typing import List

from pydantic import BaseModel, Field

from app.schemas.base import CamelModel


class DeletionError(CamelModel):
    """A key the store refused (or a batch that failed) with its message."""

    key: str
    error: str


class DeletionResult(CamelModel):
    """Outcome of one delete_files call across all of its batches."""

    deleted: List[str] = Field(default_factory=list)
    errors: List[DeletionError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class DeletionSummary(CamelModel):
    """Per-photo counts; always sums to total_photos."""

    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0


class StorageDeletionReport(CamelModel):
    """
    Result of deleting the object sets of many photos (album cleanup).

    deleted_files lists the keys the store confirmed, summary counts photos.
    """

    total_photos: int = 0
    deleted_files: List[str] = Field(default_factory=list)
    errors: List[DeletionError] = Field(default_factory=list)
    summary: DeletionSummary = Field(default_factory=DeletionSummary)

    @property
    def has_errors(self) -> bool:
        return self.summary.error_count > 0


class UploadedObjects(BaseModel):
    """Keys written for one photo, in upload order."""

    original: str
    thumbnail: str
    medium: str
