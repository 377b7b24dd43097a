"""
Authentication dependencies: bearer token -> User, active and admin guards.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.user import User
from app.services.auth import AuthService
from app.utils.prometheus_metrics import jwt_token_validation_total
from app.utils.security import decode_access_token

logger = logging.getLogger("app.auth")

# auto_error=False: 토큰 누락도 401로 통일
security = HTTPBearer(auto_error=False)


def _unauthorized(reason: str, **extra) -> HTTPException:
    logger.warning("Auth failed", extra={"event": "auth", "reason": reason, **extra})
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a User.

    Raises:
        HTTPException: 401 when the token is missing, invalid or expired, or
            the user no longer exists
    """
    if not credentials:
        raise _unauthorized("no_token")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        jwt_token_validation_total.labels(result="failure").inc()
        raise _unauthorized("invalid_or_expired_token")

    user = await AuthService(db).get_user_by_id(payload.sub)
    if user is None:
        jwt_token_validation_total.labels(result="failure").inc()
        raise _unauthorized("user_not_found", user_id=payload.sub)

    jwt_token_validation_total.labels(result="success").inc()
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """403 for deactivated accounts."""
    if not current_user.is_active:
        logger.warning(
            "Inactive user rejected",
            extra={"event": "auth", "reason": "inactive", "user_id": current_user.id},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    if not current_user.is_admin:
        logger.warning(
            "Admin access denied",
            extra={"event": "auth", "reason": "not_admin", "user_id": current_user.id},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
