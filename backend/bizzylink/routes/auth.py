"""
BizzyLink Backend: Authentication Routes
==========================================

What:  Register, login, logout, own profile and token refresh.
How:   Login and register return the token pair in the body and also set the
       access token as an HttpOnly `token` cookie for the browser frontend.
       Logout only clears that cookie; tokens are stateless.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import get_db_session
from bizzylink.dependencies import TOKEN_COOKIE, client_ip, get_current_user
from bizzylink.models.user import User
from bizzylink.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
)
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.user import UserPrivate
from bizzylink.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Username or email taken", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    result = await auth_service.register(db, data, client_ip=client_ip(request))
    _set_token_cookie(response, result.token)
    return result


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        403: {"description": "Account banned or suspended", "model": ErrorResponse},
        429: {"description": "Account temporarily locked", "model": ErrorResponse},
    },
    summary="Log in with username and password",
)
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    result = await auth_service.login(db, data, client_ip=client_ip(request))
    _set_token_cookie(response, result.token)
    return result


@router.get("/logout", response_model=MessageResponse, summary="Clear the login cookie")
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(TOKEN_COOKIE)
    return MessageResponse(message="Logged out")


@router.get("/profile", response_model=UserPrivate, summary="The signed-in user's profile")
async def profile(user: User = Depends(get_current_user)) -> UserPrivate:
    return UserPrivate.from_user(user)


@router.post(
    "/refresh-token",
    response_model=TokenPair,
    responses={401: {"description": "Invalid or expired refresh token", "model": ErrorResponse}},
    summary="Exchange a refresh token for a new token pair",
)
async def refresh_token(
    data: RefreshRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> TokenPair:
    tokens = await auth_service.refresh(db, data.refresh_token)
    _set_token_cookie(response, tokens.token)
    return tokens
