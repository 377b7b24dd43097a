"""
Account service: registration, credential checks and token issuance.
"""
import time
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.schemas.user import Token, UserCreate, UserResponse
from app.utils.logger import log_info, log_warning
from app.utils.prometheus_metrics import (
    login_duration_seconds,
    user_login_total,
    user_registration_total,
)
from app.utils.security import create_access_token, hash_password, verify_password


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Looks up accounts and turns valid credentials into access tokens."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Lookup
    # =========================================================================

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Registration / login
    # =========================================================================

    async def register(self, user_data: UserCreate) -> User:
        """
        Create an account on the FREE plan.

        Raises:
            ValueError: If the email is already taken
        """
        email = normalize_email(user_data.email)
        if await self.get_user_by_email(email) is not None:
            user_registration_total.labels(result="failure").inc()
            log_warning("Registration rejected", event="auth", reason="email_exists")
            raise ValueError("Email already registered")

        user = User(
            email=email,
            name=user_data.name,
            hashed_password=hash_password(user_data.password),
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)

        user_registration_total.labels(result="success").inc()
        log_info("User registered", event="auth", user_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the password matches an active account."""
        user = await self.get_user_by_email(email)

        reason = None
        if user is None:
            reason = "user_not_found"
        elif not user.is_active:
            reason = "inactive"
        elif not verify_password(password, user.hashed_password):
            reason = "invalid_password"

        if reason:
            log_warning(
                "Login failed",
                event="auth",
                user_id=user.id if user else None,
                reason=reason,
            )
            return None
        return user

    async def login(self, email: str, password: str) -> Optional[Token]:
        """
        Check credentials and issue a bearer token.

        Returns:
            Token with the user profile, or None on bad credentials
        """
        started = time.perf_counter()
        user = await self.authenticate(email, password)
        result = "success" if user else "failure"
        login_duration_seconds.labels(result=result).observe(time.perf_counter() - started)
        user_login_total.labels(result=result).inc()

        if user is None:
            return None

        user.last_login = datetime.utcnow()
        await self.db.flush()
        log_info("User logged in", event="auth", user_id=user.id)
        return Token(
            access_token=create_access_token(user.id),
            user=UserResponse.model_validate(user),
        )
