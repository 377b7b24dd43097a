"""
User-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserPlan
from app.schemas.base import CamelModel


class UserBase(CamelModel):
    """Base schema with common user attributes."""

    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)


class UserCreate(UserBase):
    """Schema for user registration."""

    password: str = Field(..., min_length=8, max_length=100)


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(UserBase):
    """Schema for user response (excludes sensitive data)."""

    id: str
    plan: UserPlan
    is_admin: bool
    is_active: bool
    created_at: datetime


class Token(CamelModel):
    """Schema for JWT token response."""

    access_token: str
    token_type: str = "bearer"
    user: Optional[UserResponse] = None


class TokenPayload(BaseModel):
    """Schema for JWT token payload."""

    sub: str  # User ID
    exp: datetime
