"""Authentication endpoints."""
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import (
    create_access_token, create_refresh_token, decode_token,
    get_current_user, get_password_hash, verify_password,
)
from shibr.models.user import User
from shibr.schemas.user import (
    RefreshRequest, Token, UserCreate, UserLogin, UserResponse, UserUpdate,
)

router = APIRouter()
logger = structlog.get_logger()


def _issue_tokens(user: User) -> Token:
    claims = {"sub": str(user.id), "account_type": user.account_type.value}
    return Token(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Register a store owner or brand owner account."""
    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        phone=user_data.phone,
        account_type=user_data.account_type,
        store_name=user_data.store_name,
        brand_name=user_data.brand_name,
        business_registration=user_data.business_registration,
        website=user_data.website,
        preferred_language=user_data.preferred_language,
        is_active=True,
        is_verified=False,
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", user_id=user.id, account_type=user.account_type.value)
    return user


@router.post("/login", response_model=Token)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    """Exchange email and password for access and refresh tokens."""
    result = await db.execute(select(User).where(User.email == credentials.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning("login_failed", email=credentials.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    user.last_login = datetime.utcnow()
    logger.info("user_logged_in", user_id=user.id)
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue a new token pair from a refresh token."""
    payload = decode_token(body.refresh_token, expected_type="refresh")
    user = None
    if payload and payload.get("sub"):
        try:
            user = await db.get(User, int(payload["sub"]))
        except ValueError:
            user = None

    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def read_me(user: User = Depends(get_current_user)):
    """Get the current user."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    user_data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the current user's profile."""
    for field, value in user_data.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    await db.flush()
    return user
