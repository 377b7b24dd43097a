"""
Prometheus metrics for stability, performance, and the photo storage lifecycle.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, db_errors_total, external_request_errors_total
- HA: ready gauge (1=up, 0=shutting down)
- Storage: objects uploaded/deleted/failed, deletion batches, skipped photos
"""
import logging
import socket
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "albumcraft_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "albumcraft_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
external_request_errors_total = Counter(
    "albumcraft_external_request_errors_total",
    "Total external API request failures",
    ["service"],
    registry=REGISTRY,
)

# 외부 서비스 요청 수 (성공/실패 구분), 에러율 계산용
external_request_total = Counter(
    "albumcraft_external_request_total",
    "Total external API requests by service and outcome",
    ["service", "status"],  # status: success | failure
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "albumcraft_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

app_info = Gauge(
    "albumcraft_app_info",
    "Application and node identity (labels only, value is 1)",
    ["node", "app", "version", "environment"],
    registry=REGISTRY,
)

# --- Performance ---
external_request_duration_seconds = Histogram(
    "albumcraft_external_request_duration_seconds",
    "External API request duration in seconds",
    ["service", "result"],  # result: success | failure
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

login_duration_seconds = Histogram(
    "albumcraft_login_duration_seconds",
    "Login request duration in seconds",
    ["result"],  # success | failure
    buckets=(0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 3.0, 5.0),
    registry=REGISTRY,
)

# --- Rate Limiting ---
rate_limit_hits_total = Counter(
    "albumcraft_rate_limit_hits_total",
    "Total number of rate limit hits (requests blocked)",
    ["endpoint"],
    registry=REGISTRY,
)

# --- Photo Upload Metrics ---
photo_upload_total = Counter(
    "albumcraft_photo_upload_total",
    "Total number of photo upload attempts",
    ["storage", "result"],  # storage: s3 | inline, result: success | failure
    registry=REGISTRY,
)

photo_upload_file_size_bytes = Histogram(
    "albumcraft_photo_upload_file_size_bytes",
    "Photo upload file size in bytes",
    buckets=(10240, 102400, 512000, 1024000, 5120000, 10240000, 52428800),  # 10KB to 50MB
    registry=REGISTRY,
)

photo_delete_total = Counter(
    "albumcraft_photo_delete_total",
    "Total number of single photo deletions",
    ["result"],  # result: success | partial | failure
    registry=REGISTRY,
)

gallery_download_total = Counter(
    "albumcraft_gallery_download_total",
    "Event gallery ZIP downloads",
    ["result"],  # result: success | partial | empty
    registry=REGISTRY,
)

# --- Object Storage lifecycle ---
storage_objects_uploaded_total = Counter(
    "albumcraft_storage_objects_uploaded_total",
    "Objects written to object storage",
    ["variant"],  # variant: original | thumbnail | medium | gallery
    registry=REGISTRY,
)

storage_objects_deleted_total = Counter(
    "albumcraft_storage_objects_deleted_total",
    "Objects confirmed deleted from object storage",
    registry=REGISTRY,
)

storage_objects_failed_total = Counter(
    "albumcraft_storage_objects_failed_total",
    "Objects whose deletion failed",
    registry=REGISTRY,
)

storage_delete_batches_total = Counter(
    "albumcraft_storage_delete_batches_total",
    "DeleteObjects batch requests",
    ["result"],  # result: success | failure
    registry=REGISTRY,
)

storage_photos_skipped_total = Counter(
    "albumcraft_storage_photos_skipped_total",
    "Photos skipped during bulk deletion (no object set or storage not configured)",
    registry=REGISTRY,
)

# --- Album Metrics ---
album_operations_total = Counter(
    "albumcraft_album_operations_total",
    "Total number of album operations",
    ["operation", "result"],  # operation: create | update | delete, result: success | failure
    registry=REGISTRY,
)

# --- Read cache ---
cache_requests_total = Counter(
    "albumcraft_cache_requests_total",
    "Read cache lookups",
    ["result"],  # result: hit | miss
    registry=REGISTRY,
)

# --- Auth ---
user_registration_total = Counter(
    "albumcraft_user_registration_total",
    "Total user registration attempts",
    ["result"],  # result: success | failure
    registry=REGISTRY,
)
user_login_total = Counter(
    "albumcraft_user_login_total",
    "Total login attempts",
    ["result"],  # result: success | failure
    registry=REGISTRY,
)
jwt_token_validation_total = Counter(
    "albumcraft_jwt_token_validation_total",
    "Total JWT token validation attempts (Bearer token on protected routes)",
    ["result"],  # result: success | failure
    registry=REGISTRY,
)


def _node_identity() -> str:
    """Node/instance identifier: NODE_NAME env or hostname."""
    settings = get_settings()
    if settings.node_name:
        return settings.node_name
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Context manager to record external request duration, total count, and errors.
    Use around object storage calls.
    """
    start = time.perf_counter()
    exc_raised = None
    try:
        yield
    except Exception as e:
        exc_raised = e
        external_request_errors_total.labels(service=service).inc()
        external_request_total.labels(service=service, status="failure").inc()
        raise
    finally:
        duration = time.perf_counter() - start
        result = "failure" if exc_raised is not None else "success"
        if exc_raised is None:
            external_request_total.labels(service=service, status="success").inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(duration)


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation and custom metrics.

    1. app_info + Instrumentator (FastAPI request metrics).
    2. /metrics 엔드포인트 노출 (스크래핑용).
    """
    settings = get_settings()

    app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    ).set(1)

    # status 라벨을 2xx/3xx 대신 구체 코드(200, 201, 404, 500 등)로 노출
    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
