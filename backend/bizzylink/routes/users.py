"""
BizzyLink Backend: User Routes
================================

What:  Own profile and settings, other users' public profiles and stats,
       reputation, vouches and coin donations.

Route order:
    The fixed paths (/profile, /balance, ...) are declared before the
    /{user_id} ones so they are never parsed as a UUID.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import get_db_session
from bizzylink.dependencies import get_current_user, get_optional_user
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse
from bizzylink.schemas.forum import (
    ReputationRequest,
    ReputationResponse,
    VouchRequest,
    VouchResponse,
)
from bizzylink.schemas.user import (
    BalanceResponse,
    DonationRequest,
    DonationResponse,
    NotificationSettingsUpdate,
    PrivacySettingsUpdate,
    ProfileUpdate,
    ReputationHistoryResponse,
    SettingsResponse,
    SignatureUpdate,
    UserPrivate,
    UserPublic,
    UserStatsResponse,
    VouchHistoryResponse,
)
from bizzylink.services.reputation_service import reputation_service
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


# ── Own Account ───────────────────────────────────────────────────────────


@router.get("/profile", response_model=UserPrivate, summary="Own profile")
async def get_profile(user: User = Depends(get_current_user)) -> UserPrivate:
    return UserPrivate.from_user(user)


@router.put(
    "/profile",
    response_model=UserPrivate,
    responses={409: {"description": "Email already in use", "model": ErrorResponse}},
    summary="Update bio, avatar or email",
)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserPrivate:
    return UserPrivate.from_user(await user_service.update_profile(db, user, data))


@router.put("/privacy-settings", response_model=SettingsResponse, summary="Update privacy settings")
async def update_privacy_settings(
    data: PrivacySettingsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SettingsResponse:
    return await user_service.update_privacy(db, user, data)


@router.put(
    "/notification-settings",
    response_model=SettingsResponse,
    summary="Update notification settings",
)
async def update_notification_settings(
    data: NotificationSettingsUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SettingsResponse:
    return await user_service.update_notification_settings(db, user, data)


@router.put("/signature", response_model=UserPrivate, summary="Update forum signature")
async def update_signature(
    data: SignatureUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserPrivate:
    return UserPrivate.from_user(await user_service.update_signature(db, user, data.signature))


@router.get("/balance", response_model=BalanceResponse, summary="Own balance and transactions")
async def get_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> BalanceResponse:
    return await user_service.get_balance(db, user)


@router.get(
    "/reputation",
    response_model=ReputationHistoryResponse,
    summary="Reputation received, newest first",
)
async def get_reputation_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReputationHistoryResponse:
    return await user_service.reputation_history(db, user)


@router.get("/vouches", response_model=VouchHistoryResponse, summary="Vouches received, newest first")
async def get_vouch_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VouchHistoryResponse:
    return await user_service.vouch_history(db, user)


# ── Other Users ───────────────────────────────────────────────────────────


@router.get(
    "/{user_id}",
    response_model=UserPublic,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Public profile",
)
async def get_public_profile(
    user_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserPublic:
    target = await user_service.get_user(db, user_id)
    return await user_service.public_profile(db, viewer, target)


@router.get(
    "/{user_id}/stats",
    response_model=UserStatsResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Public profile with recent forum activity",
)
async def get_user_stats(
    user_id: UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserStatsResponse:
    return await user_service.get_stats(db, viewer, user_id)


@router.post(
    "/{user_id}/reputation",
    response_model=ReputationResponse,
    responses={
        400: {"description": "Invalid value, self-vote or repeated vote", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Give +1 or -1 reputation",
)
async def give_reputation(
    user_id: UUID,
    data: ReputationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ReputationResponse:
    return await reputation_service.give_reputation(db, user, user_id, data.value)


@router.post(
    "/{user_id}/vouch",
    response_model=VouchResponse,
    responses={
        400: {"description": "Cannot vouch for yourself", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Vouch for a user, or update an existing vouch",
)
async def vouch(
    user_id: UUID,
    data: VouchRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> VouchResponse:
    return await reputation_service.vouch(db, user, user_id, data.context)


@router.post(
    "/{user_id}/donate",
    response_model=DonationResponse,
    responses={
        400: {"description": "Invalid amount, self-donation or insufficient balance", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Donate coins to another user",
)
async def donate(
    user_id: UUID,
    data: DonationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> DonationResponse:
    return await user_service.donate(db, user, user_id, data.amount, data.message)
