"""
Event galleries: a photographer's events, their albums and delivered photos.

Events are assigned to users (customers) who may browse and download them.
Gallery photos are single objects under gallery/{event_id}/{album_id}/.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.user import User, new_id

photo_event_users = Table(
    "photo_event_users",
    Base.metadata,
    Column("event_id", String(64), ForeignKey("photo_events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class PhotoEvent(Base):
    __tablename__ = "photo_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    albums: Mapped[List["GalleryAlbum"]] = relationship(
        "GalleryAlbum", back_populates="event", cascade="all, delete-orphan"
    )
    users: Mapped[List[User]] = relationship(User, secondary=photo_event_users)

    def __repr__(self) -> str:
        return f"<PhotoEvent(id={self.id}, name={self.name})>"


class GalleryAlbum(Base):
    """Album inside an event; names are unique per event."""

    __tablename__ = "photo_albums"
    __table_args__ = (UniqueConstraint("event_id", "name", name="uq_photo_albums_event_name"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("photo_events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    event: Mapped[PhotoEvent] = relationship(PhotoEvent, back_populates="albums")
    photos: Mapped[List["GalleryPhoto"]] = relationship(
        "GalleryPhoto", back_populates="album", cascade="all, delete-orphan"
    )


class GalleryPhoto(Base):
    __tablename__ = "photo_galleries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("photo_albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    # fallback 모드(data: URL)에서는 None
    s3_key: Mapped[Optional[str]] = mapped_column(String(500), unique=True, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    album: Mapped[GalleryAlbum] = relationship(GalleryAlbum, back_populates="photos")
