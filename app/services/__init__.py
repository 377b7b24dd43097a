"""
Services package.
Contains business logic and the S3 storage integration.
"""
from app.services.s3_storage import S3StorageService
from app.services.auth import AuthService
from app.services.photo import PhotoService
from app.services.album import AlbumService

__all__ = [
    "S3StorageService",
    "AuthService",
    "PhotoService",
    "AlbumService",
]
