"""
API routers package.
"""
from app.routers.auth import router as auth_router
from app.routers.photos import router as photos_router
from app.routers.albums import router as albums_router
from app.routers.dashboard import router as dashboard_router
from app.routers.admin import router as admin_router
from app.routers.galleries import admin_router as gallery_admin_router
from app.routers.galleries import user_router as gallery_user_router

__all__ = [
    "auth_router",
    "photos_router",
    "albums_router",
    "dashboard_router",
    "admin_router",
    "gallery_admin_router",
    "gallery_user_router",
]
