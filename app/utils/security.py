"""
Password hashing (bcrypt) and JWT access tokens.
"""
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import get_settings
from app.schemas.user import TokenPayload

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# access 토큰만 인증에 사용
TOKEN_TYPE_ACCESS = "access"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a signed access token for a user.

    Args:
        user_id: stored as the `sub` claim
        expires_delta: lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default

    Returns:
        Encoded JWT string
    """
    now = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "type": TOKEN_TYPE_ACCESS,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Validate signature, expiry and token type.

    Returns:
        TokenPayload, or None for any invalid token
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    user_id = claims.get("sub")
    if not user_id or claims.get("type") != TOKEN_TYPE_ACCESS:
        return None
    return TokenPayload(sub=str(user_id), exp=datetime.utcfromtimestamp(claims["exp"]))
