"""
BizzyLink Backend: Request Authentication Dependencies
========================================================

What:  FastAPI dependencies that resolve the caller and enforce access levels.
How:   The access token is read from `Authorization: Bearer <token>` first,
       then from the `token` cookie set at login. Plugin endpoints use the
       shared `X-Server-Key` header instead of a user token.

Usage:
    @router.get("/me")
    async def me(user: User = Depends(get_current_user)): ...

    @router.get("/admin/dashboard", dependencies=[Depends(require_admin)])
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import get_db_session, utcnow
from bizzylink.exceptions import AuthenticationError, NotFoundError, PermissionDeniedError
from bizzylink.models.user import User
from bizzylink.security import ACCESS_TOKEN, decode_token, token_user_id
from bizzylink.services.admin_service import RequestMeta
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(TOKEN_COOKIE) or None


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(ip=client_ip(request), user_agent=request.headers.get("User-Agent"))


async def _resolve_user(db: AsyncSession, token: str) -> User:
    payload = decode_token(token, expected_type=ACCESS_TOKEN)
    try:
        user = await user_service.get_user(db, token_user_id(payload))
    except NotFoundError:
        raise AuthenticationError("User not found")

    if user.account_status == "banned":
        raise PermissionDeniedError("This account has been banned")

    user.last_active = utcnow()
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    token = extract_token(request)
    if not token:
        raise AuthenticationError("Not authorized to access this route")
    return await _resolve_user(db, token)


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Like get_current_user, but anonymous or bad tokens give None."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return await _resolve_user(db, token)
    except (AuthenticationError, PermissionDeniedError):
        return None


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


async def require_user_manager(user: User = Depends(get_current_user)) -> User:
    """
    Account mutations (edit, flags, status, delete, LuckPerms group).

    Admin-panel access alone is not enough: moderators get `can_access_admin`
    but only site admins and holders of `can_manage_users` may change accounts.
    """
    if not user.is_user_manager:
        raise PermissionDeniedError("User management permission required")
    return user


async def require_forum_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_forum_admin:
        raise PermissionDeniedError("Forum admin access required")
    return user


async def require_server_key(x_server_key: Optional[str] = Header(default=None)) -> None:
    expected = settings.server_api_key
    if not expected or not x_server_key:
        raise AuthenticationError("Server API key required")
    if not hmac.compare_digest(x_server_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected plugin request with an invalid server key")
        raise AuthenticationError("Invalid server API key")
