"""
Authentication router — signup and login endpoints.

These are the only public (unauthenticated) endpoints besides /health.

Endpoints:
  POST /auth/signup  — Register a new user and get a token
  POST /auth/login   — Authenticate and get a token

Plaintext passwords exist only in memory during request processing; they
are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankcards.database import get_db
from bankcards.schemas.auth import (
    UserSignupRequest,
    UserLoginRequest,
    TokenResponse,
    SignupResponse,
)
from bankcards.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new card holder (role USER).

    - **username**: 3-50 characters, unique
    - **email**: Valid email format, unique
    - **password**: Minimum 8 characters
    """
    user, token = await auth_service.signup(
        db=db,
        username=request.username,
        email=request.email,
        password=request.password,
    )

    return SignupResponse(
        user_id=user.id,
        username=user.username,
        role=user.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with username and password.

    Returns a JWT bearer token for the Authorization header:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        username=request.username,
        password=request.password,
    )

    return TokenResponse(token=token)
