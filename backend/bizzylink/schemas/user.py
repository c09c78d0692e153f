"""
BizzyLink Backend: User Schemas
=================================

What:  Profile views (private, public, admin), settings updates and the
       balance/reputation/vouch history responses.

Private vs public:
    UserPrivate is only ever returned to the account owner (and admins).
    UserPublic is what other visitors see, with fields removed according to
    the owner's privacy settings (see UserService.public_profile).
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from bizzylink.schemas.forum import PostSearchItem, ThreadItem


class UserPrivate(BaseModel):
    id: uuid.UUID
    username: str
    email: Optional[str] = None
    role: str
    forum_rank: str
    luckperms_group: str
    permissions: Dict[str, bool]
    account_status: str
    minecraft_linked: bool
    minecraft_username: Optional[str] = None
    minecraft_uuid: Optional[str] = None
    linked_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    post_count: int
    thread_count: int
    reputation: int
    vouches: int
    signature: str
    bio: str
    avatar: Optional[str] = None
    balance: int
    privacy_settings: Dict[str, Any]
    notification_settings: Dict[str, bool]
    created_at: datetime
    last_login: Optional[datetime] = None
    last_active: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserPrivate":
        return cls(**_private_fields(user))


class AdminUserResponse(UserPrivate):
    """Adds the account-security fields an admin needs."""
    registration_ip: Optional[str] = None
    last_login_ip: Optional[str] = None
    failed_login_count: int = 0
    lock_until: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "AdminUserResponse":
        return cls(
            **_private_fields(user),
            registration_ip=user.registration_ip,
            last_login_ip=user.last_login_ip,
            failed_login_count=user.failed_login_count,
            lock_until=user.lock_until,
        )


def _private_fields(user) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "forum_rank": user.forum_rank,
        "luckperms_group": user.luckperms_group,
        "permissions": user.effective_permissions(),
        "account_status": user.account_status,
        "minecraft_linked": user.is_linked,
        "minecraft_username": user.minecraft_username,
        "minecraft_uuid": user.minecraft_uuid,
        "linked_at": user.linked_at,
        "last_seen": user.last_seen,
        "post_count": user.post_count,
        "thread_count": user.thread_count,
        "reputation": user.reputation,
        "vouches": user.vouches,
        "signature": user.signature,
        "bio": user.bio,
        "avatar": user.avatar,
        "balance": user.balance,
        "privacy_settings": dict(user.privacy_settings or {}),
        "notification_settings": dict(user.notification_settings or {}),
        "created_at": user.created_at,
        "last_login": user.last_login,
        "last_active": user.last_active,
    }


class UserPublic(BaseModel):
    """
    Another visitor's view of a profile.

    `restricted` is True when the owner's visibility setting hides the
    profile; only id and username are filled in then.
    """
    id: uuid.UUID
    username: str
    restricted: bool = False
    avatar: Optional[str] = None
    bio: Optional[str] = None
    signature: Optional[str] = None
    role: Optional[str] = None
    forum_rank: Optional[str] = None
    minecraft_linked: Optional[bool] = None
    minecraft_username: Optional[str] = None
    post_count: Optional[int] = None
    thread_count: Optional[int] = None
    reputation: Optional[int] = None
    vouches: Optional[int] = None
    balance: Optional[int] = None
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None


class UserStatsResponse(BaseModel):
    user: UserPublic
    recent_threads: List[ThreadItem] = Field(default_factory=list)
    recent_posts: List[PostSearchItem] = Field(default_factory=list)
    total_likes: int = 0


# ══════════════════════════════════════════════════════════════════════════
# Updates
# ══════════════════════════════════════════════════════════════════════════


class ProfileUpdate(BaseModel):
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=500)
    email: Optional[EmailStr] = None


class PrivacySettingsUpdate(BaseModel):
    profile_visibility: Optional[Literal["public", "friends", "private"]] = None
    allow_friend_requests: Optional[bool] = None
    allow_followers: Optional[bool] = None
    show_reputation: Optional[bool] = None
    show_vouches: Optional[bool] = None
    show_balance: Optional[bool] = None


class NotificationSettingsUpdate(BaseModel):
    friend_requests: Optional[bool] = None
    new_followers: Optional[bool] = None
    friend_activity: Optional[bool] = None
    in_game: Optional[bool] = None
    reputation: Optional[bool] = None
    vouches: Optional[bool] = None
    donations: Optional[bool] = None
    wall_activity: Optional[bool] = None


class SettingsResponse(BaseModel):
    message: str
    privacy_settings: Dict[str, Any]
    notification_settings: Dict[str, bool]


class SignatureUpdate(BaseModel):
    signature: str = Field(max_length=500)


# ══════════════════════════════════════════════════════════════════════════
# Balance, Reputation and Vouch History
# ══════════════════════════════════════════════════════════════════════════


class DonationRequest(BaseModel):
    # Positivity is checked by the service (400 rather than 422)
    amount: int
    message: str = Field(default="", max_length=200)


class DonationResponse(BaseModel):
    message: str
    balance: int


class TransactionItem(BaseModel):
    id: uuid.UUID
    direction: Literal["sent", "received"]
    amount: int
    message: str
    counterparty_id: Optional[uuid.UUID] = None
    counterparty_username: Optional[str] = None
    created_at: datetime


class BalanceResponse(BaseModel):
    balance: int
    transactions: List[TransactionItem]


class ReputationHistoryItem(BaseModel):
    giver_id: uuid.UUID
    giver_username: Optional[str] = None
    value: int
    created_at: datetime


class ReputationHistoryResponse(BaseModel):
    reputation: int
    history: List[ReputationHistoryItem]


class VouchHistoryItem(BaseModel):
    giver_id: uuid.UUID
    giver_username: Optional[str] = None
    context: str
    created_at: datetime
    updated_at: datetime


class VouchHistoryResponse(BaseModel):
    vouches: int
    history: List[VouchHistoryItem]
