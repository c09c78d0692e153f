"""
BizzyLink Backend: Minecraft Linking Routes
=============================================

Web-facing (JWT):
    GET    /api/minecraft/status            link state or the active code
    POST   /api/minecraft/generate-code     new one-time link code
    POST   /api/minecraft/unlink            clear the link
    GET    /api/minecraft/check/{username}  is this Minecraft name linked? (public)

Plugin-facing (X-Server-Key):
    POST   /api/minecraft/link              validate a code typed in game
    POST   /api/minecraft/pending           was a code requested for this player?
    POST   /api/minecraft/lookup            which account is this player?
    POST   /api/minecraft/seen              bump last_seen

Validate answers 200 {success: false} for an unknown or expired code so the
plugin can show a friendly message; malformed input is still a 400.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import get_db_session
from bizzylink.dependencies import get_current_user, require_server_key
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse
from bizzylink.schemas.minecraft import (
    LinkCodeRequest,
    LinkCodeResponse,
    LinkStatusResponse,
    PendingLinkResponse,
    ServerLinkRequest,
    ServerLinkResponse,
    ServerPlayerRequest,
    UnlinkResponse,
    UsernameCheckResponse,
)
from bizzylink.services.link_service import link_service

router = APIRouter(prefix="/api/minecraft", tags=["Minecraft"])

_SERVER_KEY = {401: {"description": "Missing or invalid X-Server-Key", "model": ErrorResponse}}


# ── Web-facing ────────────────────────────────────────────────────────────


@router.get("/status", response_model=LinkStatusResponse, summary="Own link status")
async def link_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LinkStatusResponse:
    return await link_service.status(db, user)


@router.post(
    "/generate-code",
    response_model=LinkCodeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Already linked or expiry out of range", "model": ErrorResponse}},
    summary="Generate a one-time link code",
)
async def generate_code(
    data: LinkCodeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> LinkCodeResponse:
    return await link_service.generate(db, user, data)


@router.post("/unlink", response_model=UnlinkResponse, summary="Unlink the Minecraft account")
async def unlink(
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UnlinkResponse:
    return await link_service.unlink(db, user, background_tasks)


@router.get(
    "/check/{minecraft_username}",
    response_model=UsernameCheckResponse,
    summary="Whether a Minecraft username is linked to any account",
)
async def check_username(
    minecraft_username: str,
    db: AsyncSession = Depends(get_db_session),
) -> UsernameCheckResponse:
    return await link_service.check_username(db, minecraft_username)


# ── Plugin-facing ─────────────────────────────────────────────────────────


@router.post(
    "/link",
    response_model=ServerLinkResponse,
    dependencies=[Depends(require_server_key)],
    responses={
        400: {"description": "Malformed username, UUID or code", "model": ErrorResponse},
        409: {"description": "UUID linked to another account", "model": ErrorResponse},
        **_SERVER_KEY,
    },
    summary="Validate a link code typed in game",
)
async def validate_link(
    data: ServerLinkRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
) -> ServerLinkResponse:
    return await link_service.validate(db, data, background_tasks)


@router.post(
    "/pending",
    response_model=PendingLinkResponse,
    dependencies=[Depends(require_server_key)],
    responses=_SERVER_KEY,
    summary="Whether a link is pending for a player",
)
async def pending_link(
    data: ServerPlayerRequest,
    db: AsyncSession = Depends(get_db_session),
) -> PendingLinkResponse:
    return await link_service.pending(db, data)


@router.post(
    "/lookup",
    response_model=ServerLinkResponse,
    dependencies=[Depends(require_server_key)],
    responses=_SERVER_KEY,
    summary="Find the account linked to a player",
)
async def lookup_player(
    data: ServerPlayerRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ServerLinkResponse:
    return await link_service.lookup(db, data)


@router.post(
    "/seen",
    response_model=ServerLinkResponse,
    dependencies=[Depends(require_server_key)],
    responses=_SERVER_KEY,
    summary="Record that a linked player was seen in game",
)
async def player_seen(
    data: ServerPlayerRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ServerLinkResponse:
    return await link_service.seen(db, data)
