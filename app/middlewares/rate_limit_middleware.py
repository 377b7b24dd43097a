"""
Rate limiting using slowapi.
Login and registration are limited per client IP (AUTH_RATE_LIMIT).
"""
import logging
from typing import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.utils.client_ip import get_client_ip
from app.utils.logger import get_request_id
from app.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("app.rate_limit")
settings = get_settings()


def get_client_identifier(request: Request) -> str:
    """Rate limiting 키: 프록시 헤더를 고려한 클라이언트 IP."""
    return get_client_ip(request) or "unknown"


# Rate limiter 인스턴스 생성
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",  # 단일 인스턴스 기준 (분산 환경에서는 Redis)
)


def setup_rate_limit_exception_handler(app) -> None:
    """Rate limit 초과 시 429 + {success: false, error} 응답."""
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        endpoint = request.url.path
        rate_limit_hits_total.labels(endpoint=endpoint).inc()
        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_ip": get_client_identifier(request),
                "endpoint": endpoint,
                "limit": str(exc.detail),
            },
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "error": "Too many requests, please try again later",
                "requestId": get_request_id(),
            },
        )


def get_rate_limit_decorator(limit: str) -> Callable:
    """
    Rate limit 데코레이터 생성 헬퍼.

    Args:
        limit: Rate limit 문자열 (예: "10/minute", "60/hour")
    """
    if not settings.rate_limit_enabled:
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
