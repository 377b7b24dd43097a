"""
Account endpoints: register, login and the current profile.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.dependencies.auth import get_current_active_user
from app.middlewares.rate_limit_middleware import get_rate_limit_decorator
from app.models.user import User
from app.schemas.user import Token, UserCreate, UserLogin, UserResponse
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])

# 로그인/가입은 IP 단위로 더 엄격하게 제한
limit_auth = get_rate_limit_decorator(get_settings().auth_rate_limit)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limit_auth
async def register(
    request: Request,
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """
    Create an account. Email is stored lower-cased and must be unique;
    password must be 8-100 characters.
    """
    try:
        user = await AuthService(db).register(payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()
    return UserResponse.model_validate(user)


@router.post("/login", response_model=Token)
@limit_auth
async def login(
    request: Request,
    payload: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    """Exchange email and password for a bearer token."""
    token = await AuthService(db).login(payload.email, payload.password)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    await db.commit()
    return token


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)):
    return UserResponse.model_validate(current_user)
