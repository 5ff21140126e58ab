"""Authentication API endpoints."""

import logging
import uuid
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select

from insighter_server.api.deps import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from insighter_server.auth import (
    TokenPayload,
    TokenResponse,
    create_access_token,
    get_current_user,
    get_token_expiration_seconds,
    hash_password,
    verify_password,
)
from insighter_server.config import get_settings
from insighter_server.database import User, get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


class LoginRequest(BaseModel):
    """Login request model."""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., description="Password")


class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """User response model."""

    user_id: str
    email: str
    name: str
    status: str
    created_at: datetime
    last_login_at: datetime | None


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        status=user.status,
        created_at=user.created_at,
        last_login_at=user.last_login_at,
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, response: Response) -> TokenResponse:
    """User login endpoint.

    Returns a bearer token and also sets it as an HTTP-only cookie so that
    browser redirects (the OAuth callback) are authenticated.
    """
    async with get_db_session() as session:
        result = await session.execute(
            select(User).where(User.email == body.email.lower())
        )
        user = result.scalar_one_or_none()

        if not user or not user.password_hash or not verify_password(body.password, user.password_hash):
            raise UnauthorizedError("Invalid email or password")

        if user.status != "active":
            raise ForbiddenError(f"User account is {user.status}")

        user.last_login_at = datetime.now(timezone.utc)
        await session.commit()

        access_token = create_access_token(user.user_id, user.email)
        expires_in = get_token_expiration_seconds()

        response.set_cookie(
            key=get_settings().session_cookie_name,
            value=access_token,
            max_age=expires_in,
            httponly=True,
            samesite="lax",
        )

        logger.info(f"User logged in: {user.email}")

        return TokenResponse(
            access_token=access_token,
            token_type="Bearer",
            expires_in=expires_in,
            user={
                "user_id": user.user_id,
                "email": user.email,
                "name": user.name,
            },
        )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest) -> UserResponse:
    """Register a new user."""
    email = body.email.lower()
    async with get_db_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            raise ConflictError("Email already registered")

        now = datetime.now(timezone.utc)
        user = User(
            user_id=str(uuid.uuid4()),
            email=email,
            name=body.name,
            password_hash=hash_password(body.password),
            status="active",
            created_at=now,
            updated_at=now,
        )
        session.add(user)
        await session.commit()

        logger.info(f"User registered: {email}")
        return _user_response(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response) -> None:
    """Clear the session cookie."""
    response.delete_cookie(get_settings().session_cookie_name)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: TokenPayload = Depends(get_current_user)) -> UserResponse:
    """Get the authenticated user."""
    async with get_db_session() as session:
        result = await session.execute(select(User).where(User.user_id == current_user.user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("user", current_user.user_id)
        return _user_response(user)
