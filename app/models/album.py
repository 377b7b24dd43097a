"""
Album model for organizing photos into collections.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, DateTime, Integer, ForeignKey, Text, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import new_id

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.photo import Photo


class AlbumStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


# 대시보드 "진행 중" 집계 대상
ACTIVE_ALBUM_STATUSES = (AlbumStatus.DRAFT, AlbumStatus.IN_PROGRESS)


class Album(Base):
    """Album model for grouping photos together."""

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Album information
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[AlbumStatus] = mapped_column(
        Enum(AlbumStatus, native_enum=False, length=20), default=AlbumStatus.DRAFT
    )
    # 인쇄 규격 (예: "8x10")
    album_size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="albums")
    photos: Mapped[List["Photo"]] = relationship(
        "Photo", back_populates="album", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Album(id={self.id}, name={self.name})>"
