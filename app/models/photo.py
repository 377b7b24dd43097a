"""
Photo model for storing photo metadata.
The image itself lives in S3 as three objects (original, thumbnail, medium)
addressed by s3_key, or inline as data: URLs when S3 is not configured.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, String, DateTime, Integer, ForeignKey, Text, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import new_id

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.album import Album


class Photo(Base):
    """
    Photo model for storing photo metadata.
    s3_key is the canonical (original) key; variant keys are derived from it.
    """

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    album_id: Mapped[Optional[str]] = mapped_column(
        String(64), ForeignKey("albums.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # File metadata
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Storage information
    s3_key: Mapped[Optional[str]] = mapped_column(
        String(500), unique=True, nullable=True
    )
    # 공개 URL 또는 fallback 모드의 data: URL
    url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_s3_stored: Mapped[bool] = mapped_column(Boolean, default=False)

    # "metadata"는 DeclarativeBase 예약어라 속성명만 다르게 매핑
    photo_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="photos")
    album: Mapped[Optional["Album"]] = relationship("Album", back_populates="photos")

    @property
    def has_object_set(self) -> bool:
        """True when the three storage objects exist for this photo."""
        return bool(self.is_s3_stored and self.s3_key)

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, s3_key={self.s3_key})>"
