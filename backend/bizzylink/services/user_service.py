"""
BizzyLink Backend: User Service
=================================

What:  Account lookups, profile/settings updates, public profiles with
       privacy rules, balances and donations.
Who:   Called by the /api/users routes, and by every other service that
       needs to resolve a user by id or name.

Privacy rules for another visitor's view:
    profile_visibility=private  → only id and username
    profile_visibility=friends  → only id and username unless friends
    show_reputation / show_vouches / show_balance=false → that field is None
    The owner and site admins always see everything.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from bizzylink.database import apply_deltas
from bizzylink.exceptions import ConflictError, NotFoundError, ValidationError
from bizzylink.models.social import Friendship
from bizzylink.models.user import ReputationVote, Transaction, User, Vouch
from bizzylink.schemas.user import (
    BalanceResponse,
    DonationResponse,
    NotificationSettingsUpdate,
    PrivacySettingsUpdate,
    ProfileUpdate,
    ReputationHistoryItem,
    ReputationHistoryResponse,
    SettingsResponse,
    TransactionItem,
    UserPublic,
    UserStatsResponse,
    VouchHistoryItem,
    VouchHistoryResponse,
)
from bizzylink.services.forum_service import forum_service
from bizzylink.services.notification_service import notification_service

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


class UserService:

    # ── Lookups ───────────────────────────────────────────────────────────

    async def get_user(self, db: AsyncSession, user_id: UUID) -> User:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def find_by_username(self, db: AsyncSession, username: str) -> Optional[User]:
        """Case-insensitive; usernames are unique ignoring case."""
        result = await db.execute(
            select(User).where(func.lower(User.username) == username.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_by_username(self, db: AsyncSession, username: str) -> User:
        user = await self.find_by_username(db, username)
        if user is None:
            raise NotFoundError(resource="user", resource_id=username)
        return user

    async def find_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def are_friends(self, db: AsyncSession, user_id: UUID, other_id: UUID) -> bool:
        result = await db.execute(
            select(Friendship.user_id).where(
                Friendship.user_id == user_id, Friendship.friend_id == other_id
            )
        )
        return result.scalar_one_or_none() is not None

    # ── Own Profile ───────────────────────────────────────────────────────

    async def update_profile(self, db: AsyncSession, user: User, data: ProfileUpdate) -> User:
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email") is not None:
            email = str(changes["email"]).lower()
            existing = await self.find_by_email(db, email)
            if existing is not None and existing.id != user.id:
                raise ConflictError("Email is already in use", context={"field": "email"})
            user.email = email
        if changes.get("bio") is not None:
            user.bio = changes["bio"]
        if "avatar" in changes:
            user.avatar = changes["avatar"] or None

        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError("Email is already in use", context={"field": "email"}) from e
        return user

    def _settings_response(self, user: User, message: str) -> SettingsResponse:
        return SettingsResponse(
            message=message,
            privacy_settings=dict(user.privacy_settings or {}),
            notification_settings=dict(user.notification_settings or {}),
        )

    async def update_privacy(
        self, db: AsyncSession, user: User, data: PrivacySettingsUpdate
    ) -> SettingsResponse:
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        # JSON columns only notice reassignment, not in-place mutation
        user.privacy_settings = {**(user.privacy_settings or {}), **changes}
        await db.flush()
        return self._settings_response(user, "Privacy settings updated")

    async def update_notification_settings(
        self, db: AsyncSession, user: User, data: NotificationSettingsUpdate
    ) -> SettingsResponse:
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        user.notification_settings = {**(user.notification_settings or {}), **changes}
        await db.flush()
        return self._settings_response(user, "Notification settings updated")

    async def update_signature(self, db: AsyncSession, user: User, signature: str) -> User:
        user.signature = signature.strip()
        await db.flush()
        return user

    # ── Public Profile ────────────────────────────────────────────────────

    async def can_view_profile(self, db: AsyncSession, viewer: Optional[User], target: User) -> bool:
        if viewer is not None and (viewer.id == target.id or viewer.is_admin):
            return True
        visibility = target.privacy("profile_visibility")
        if visibility == "private":
            return False
        if visibility == "friends":
            return viewer is not None and await self.are_friends(db, viewer.id, target.id)
        return True

    async def public_profile(
        self, db: AsyncSession, viewer: Optional[User], target: User
    ) -> UserPublic:
        if not await self.can_view_profile(db, viewer, target):
            return UserPublic(id=target.id, username=target.username, restricted=True)

        sees_all = viewer is not None and (viewer.id == target.id or viewer.is_admin)

        def shown(key: str, value):
            return value if sees_all or target.privacy(key) else None

        return UserPublic(
            id=target.id,
            username=target.username,
            avatar=target.avatar,
            bio=target.bio,
            signature=target.signature,
            role=target.role,
            forum_rank=target.forum_rank,
            minecraft_linked=target.is_linked,
            minecraft_username=target.minecraft_username,
            post_count=target.post_count,
            thread_count=target.thread_count,
            reputation=shown("show_reputation", target.reputation),
            vouches=shown("show_vouches", target.vouches),
            balance=shown("show_balance", target.balance),
            created_at=target.created_at,
            last_active=target.last_active,
        )

    async def get_stats(
        self, db: AsyncSession, viewer: Optional[User], user_id: UUID
    ) -> UserStatsResponse:
        target = await self.get_user(db, user_id)
        profile = await self.public_profile(db, viewer, target)
        if profile.restricted:
            return UserStatsResponse(user=profile)

        return UserStatsResponse(
            user=profile,
            recent_threads=await forum_service.recent_threads(
                db, limit=5, author_id=target.id, viewer=viewer
            ),
            recent_posts=await forum_service.recent_posts(
                db, limit=10, author_id=target.id, viewer=viewer
            ),
            total_likes=await forum_service.likes_received(db, target.id),
        )

    # ── Balance and History ───────────────────────────────────────────────

    async def get_balance(self, db: AsyncSession, user: User) -> BalanceResponse:
        result = await db.execute(
            select(Transaction)
            .where(or_(Transaction.sender_id == user.id, Transaction.recipient_id == user.id))
            .order_by(Transaction.created_at.desc())
            .limit(HISTORY_LIMIT)
        )
        transactions = result.scalars().all()

        counterparties = set()
        for tx in transactions:
            counterparties.add(tx.recipient_id if tx.sender_id == user.id else tx.sender_id)
        names = await forum_service.usernames(db, counterparties)

        items = []
        for tx in transactions:
            sent = tx.sender_id == user.id
            other = tx.recipient_id if sent else tx.sender_id
            items.append(
                TransactionItem(
                    id=tx.id,
                    direction="sent" if sent else "received",
                    amount=tx.amount,
                    message=tx.message,
                    counterparty_id=other,
                    counterparty_username=names.get(other),
                    created_at=tx.created_at,
                )
            )
        return BalanceResponse(balance=user.balance, transactions=items)

    async def reputation_history(self, db: AsyncSession, user: User) -> ReputationHistoryResponse:
        result = await db.execute(
            select(ReputationVote, User.username)
            .join(User, User.id == ReputationVote.giver_id)
            .where(ReputationVote.receiver_id == user.id)
            .order_by(ReputationVote.created_at.desc())
            .limit(HISTORY_LIMIT)
        )
        history = [
            ReputationHistoryItem(
                giver_id=vote.giver_id,
                giver_username=username,
                value=vote.value,
                created_at=vote.created_at,
            )
            for vote, username in result.all()
        ]
        return ReputationHistoryResponse(reputation=user.reputation, history=history)

    async def vouch_history(self, db: AsyncSession, user: User) -> VouchHistoryResponse:
        result = await db.execute(
            select(Vouch, User.username)
            .join(User, User.id == Vouch.giver_id)
            .where(Vouch.receiver_id == user.id)
            .order_by(Vouch.updated_at.desc())
            .limit(HISTORY_LIMIT)
        )
        history = [
            VouchHistoryItem(
                giver_id=vouch.giver_id,
                giver_username=username,
                context=vouch.context,
                created_at=vouch.created_at,
                updated_at=vouch.updated_at,
            )
            for vouch, username in result.all()
        ]
        return VouchHistoryResponse(vouches=user.vouches, history=history)

    # ── Donations ─────────────────────────────────────────────────────────

    async def donate(
        self, db: AsyncSession, sender: User, target_id: UUID, amount: int, message: str = ""
    ) -> DonationResponse:
        if amount <= 0:
            raise ValidationError("Donation amount must be a positive whole number", field="amount")
        if target_id == sender.id:
            raise ValidationError("You cannot donate to yourself")

        recipient = await self.get_user(db, target_id)
        if sender.balance < amount:
            raise ValidationError(
                "Insufficient balance",
                field="amount",
                context={"balance": sender.balance, "amount": amount},
            )

        # Balance guard lives in the WHERE clause; no row back means the
        # coins were already spent
        debit = await db.execute(
            update(User)
            .where(User.id == sender.id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .returning(User.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = debit.scalar_one_or_none()
        if new_balance is None:
            raise ValidationError("Insufficient balance", field="amount", context={"amount": amount})
        set_committed_value(sender, "balance", new_balance)
        await apply_deltas(db, recipient, {"balance": amount})

        db.add(
            Transaction(
                sender_id=sender.id,
                recipient_id=recipient.id,
                amount=amount,
                message=message.strip(),
            )
        )
        await notification_service.notify(
            db,
            recipient,
            type="donation",
            message=f"{sender.username} donated {amount} coins to you",
            sender_id=sender.id,
            data={"amount": amount, "message": message.strip()},
            setting="donations",
        )
        await db.flush()

        logger.info("User %s donated %d coins to %s", sender.id, amount, recipient.id)
        return DonationResponse(
            message=f"Successfully donated {amount} coins to {recipient.username}",
            balance=sender.balance,
        )


user_service = UserService()
