"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from app.schemas.user import (
    UserCreate,
    UserResponse,
    UserLogin,
    Token,
    TokenPayload,
)
from app.schemas.photo import (
    PhotoResponse,
    PhotoUpdate,
    PhotoPage,
    PaginationInfo,
    PhotoUploadResponse,
)
from app.schemas.album import (
    AlbumCreate,
    AlbumResponse,
    AlbumUpdate,
    AlbumDeleteResponse,
)
from app.schemas.storage import (
    DeletionError,
    DeletionResult,
    DeletionSummary,
    StorageDeletionReport,
)
from app.schemas.dashboard import DashboardStats

__all__ = [
    # User schemas
    "UserCreate",
    "UserResponse",
    "UserLogin",
    "Token",
    "TokenPayload",
    # Photo schemas
    "PhotoResponse",
    "PhotoUpdate",
    "PhotoPage",
    "PaginationInfo",
    "PhotoUploadResponse",
    # Album schemas
    "AlbumCreate",
    "AlbumResponse",
    "AlbumUpdate",
    "AlbumDeleteResponse",
    # Storage schemas
    "DeletionError",
    "DeletionResult",
    "DeletionSummary",
    "StorageDeletionReport",
    # Dashboard
    "DashboardStats",
]
