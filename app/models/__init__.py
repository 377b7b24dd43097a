"""
Database models package.
All models are exported here for easy import.
"""
from app.models.user import User, UserPlan
from app.models.album import Album, AlbumStatus
from app.models.photo import Photo
from app.models.gallery import GalleryAlbum, GalleryPhoto, PhotoEvent, photo_event_users

__all__ = [
    "User",
    "UserPlan",
    "Album",
    "AlbumStatus",
    "Photo",
    "PhotoEvent",
    "GalleryAlbum",
    "GalleryPhoto",
    "photo_event_users",
]
