"""
Health Check 라우터.

로드밸런서 / Kubernetes 헬스체크 엔드포인트.
"""
import asyncio
import time
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from app.config import get_settings
from app.database import engine
from app.services.s3_storage import get_storage_service
from app.utils.logger import log_warning
from app.utils.prometheus_metrics import REGISTRY, Gauge, ready

router = APIRouter(prefix="/health", tags=["Health"])

DB_CHECK_TIMEOUT_SECONDS = 1.0

health_check_status = Gauge(
    "albumcraft_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)


def _unavailable(check_type: str, detail: str) -> HTTPException:
    health_check_status.labels(check_type=check_type).set(0)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


def _ensure_ready(check_type: str) -> None:
    # shutdown 중에는 ready=0
    if ready._value.get() == 0:
        raise _unavailable(check_type, "Application is shutting down")


async def _check_database(check_type: str) -> None:
    """SELECT 1 with a short timeout. Raises 503 on failure."""

    async def _select_one():
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_select_one(), timeout=DB_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        log_warning("Database check timed out", event="health", check_type=check_type)
        raise _unavailable(check_type, "Database connection timeout")
    except Exception as e:
        log_warning("Database check failed", event="health", check_type=check_type, error=str(e))
        raise _unavailable(check_type, "Database not ready")


@router.get("", summary="Health check")
async def health_check() -> Dict[str, Any]:
    """애플리케이션 상태와 DB 연결만 확인 (타임아웃 1초)."""
    started = time.perf_counter()
    _ensure_ready("fast")
    await _check_database("fast")

    health_check_status.labels(check_type="fast").set(1)
    return {
        "status": "healthy",
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        "instance": get_settings().instance_ip or "unknown",
    }


@router.get("/liveness", summary="Liveness check")
async def liveness_check() -> Dict[str, str]:
    _ensure_ready("liveness")
    return {"status": "alive"}


@router.get("/readiness", summary="Readiness check")
async def readiness_check() -> Dict[str, Any]:
    """
    DB 연결 + 스토리지 모드 보고.

    S3 미설정은 실패가 아님 (Base64 inline 저장으로 동작).
    """
    _ensure_ready("readiness")
    await _check_database("readiness")

    health_check_status.labels(check_type="readiness").set(1)
    return {
        "status": "ready",
        "checks": {
            "database": "up",
            "storage": "s3" if get_storage_service().is_configured else "inline",
        },
    }
