"""
AlbumCraft Pro API entry point.

Wires settings, middlewares, the error envelope and routers into one FastAPI app.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database import init_db, close_db
from app.middlewares.logging_middleware import LoggingMiddleware
from app.middlewares.rate_limit_middleware import setup_rate_limit_exception_handler
from app.routers import (
    admin_router,
    albums_router,
    auth_router,
    dashboard_router,
    gallery_admin_router,
    gallery_user_router,
    photos_router,
)
from app.routers.health import router as health_router
from app.services.s3_storage import get_storage_service
from app.utils.logger import setup_logging, get_request_id, log_error, log_info
from app.utils.prometheus_metrics import (
    exceptions_total,
    ready,
    setup_prometheus,
)

settings = get_settings()

# Python logging 설정
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan.

    Shutdown 흐름: ready=0 (health check 즉시 실패) -> DB 연결 종료
    """
    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
        storage="s3" if get_storage_service().is_configured else "inline",
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")
    await close_db()
    log_info("Graceful shutdown completed", event="lifecycle")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## AlbumCraft Pro API

Photo album projects backed by S3, featuring:

### Features
- **User Management**: Registration and JWT authentication
- **Photo Management**: Upload (original, thumbnail and medium variants), list, move and delete
- **Album Management**: Album projects with status tracking; deleting an album cleans up its stored objects
- **Dashboard**: Per-user project and storage statistics
- **Admin**: Cross-user listing and CSV reports

### Storage
Photos are stored in S3 when `AWS_*` settings are complete. Otherwise they are
kept inline as Base64 data URLs (development only).

### Authentication
Most endpoints require authentication via Bearer token.
Use the `/api/auth/login` endpoint to get a token.
    """,
    openapi_tags=[
        {"name": "Authentication", "description": "User registration and login"},
        {"name": "Photos", "description": "Photo upload and management"},
        {"name": "Albums", "description": "Album management"},
        {"name": "Dashboard", "description": "User statistics"},
        {"name": "Admin", "description": "Administrative operations"},
        {"name": "Health", "description": "Health checks"},
    ],
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics + node info at /metrics
setup_prometheus(app)

# Rate limiting: 기본 한도 + 예외 처리 핸들러 등록
setup_rate_limit_exception_handler(app)
app.add_middleware(SlowAPIMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add structured logging middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTPException -> {success: false, error}"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """요청 검증 실패는 400으로 응답 (첫 번째 오류 메시지 사용)."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """처리되지 않은 예외: ERROR 로그 후 requestId 포함 500 응답."""
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=request.url.path,
        request_id=rid,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "requestId": rid,  # 사용자가 이 ID로 문의 가능
        },
    )


# health 는 루트, 나머지는 /api 하위
app.include_router(health_router)
for api_router in (
    auth_router,
    photos_router,
    albums_router,
    dashboard_router,
    admin_router,
    gallery_admin_router,
    gallery_user_router,
):
    app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Root"], summary="API information")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
