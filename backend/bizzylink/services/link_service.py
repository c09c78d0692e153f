"""
BizzyLink Backend: Minecraft Account Linking
==============================================

What:  One-time link codes, the plugin-facing validate/pending/lookup/seen
       calls, and unlinking.
Who:   /api/minecraft routes. Web-facing calls carry the user's JWT;
       server-facing calls carry the X-Server-Key header instead.

Link flow:
    1. A signed-in user asks for a code (6 characters from an alphabet
       without 0/O/1/I) valid for 30 minutes by default.
    2. In game, the player types `/link <code>`; the plugin posts the code
       with the player's name and UUID to /api/minecraft/link.
    3. validate() checks the code, writes the UUID and name onto the user,
       deletes the user's codes, stores a notification, commits and then
       schedules the outbound webhook.

    A user is linked exactly when `minecraft_uuid` is set. Unlinking clears
    every link field at once.
"""

import logging
import re
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.config import settings
from bizzylink.database import as_utc, utcnow
from bizzylink.exceptions import ConflictError, DatabaseError, ValidationError
from bizzylink.models.link_code import LinkCode
from bizzylink.models.user import User
from bizzylink.schemas.minecraft import (
    LinkCodeRequest,
    LinkCodeResponse,
    LinkedAccount,
    LinkStatusResponse,
    PendingLinkResponse,
    ServerLinkRequest,
    ServerLinkResponse,
    ServerPlayerRequest,
    UnlinkResponse,
    UsernameCheckResponse,
)
from bizzylink.services.link_notifier import (
    LINKED_EVENT,
    UNLINKED_EVENT,
    build_event,
    link_notifier,
)
from bizzylink.services.notification_service import notification_service
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 10

MINECRAFT_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,16}$")
MINECRAFT_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_uuid(value: str) -> str:
    """'069A79F444E94726A5BEFCA90E38AAF5' → '069a79f4-44e9-4726-a5be-fca90e38aaf5'"""
    raw = value.replace("-", "").lower()
    return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"


def clean_minecraft_username(value: Optional[str]) -> str:
    username = (value or "").strip()
    if not MINECRAFT_USERNAME_RE.match(username):
        raise ValidationError(
            "Minecraft username must be 3-16 letters, digits or underscores",
            field="username",
        )
    return username


def clean_minecraft_uuid(value: Optional[str]) -> str:
    raw = (value or "").strip()
    if not MINECRAFT_UUID_RE.match(raw):
        raise ValidationError("Invalid Minecraft UUID", field="uuid")
    return normalize_uuid(raw)


def linked_account(user: User) -> LinkedAccount:
    return LinkedAccount(
        user_id=user.id,
        username=user.username,
        minecraft_username=user.minecraft_username,
        minecraft_uuid=user.minecraft_uuid,
        luckperms_group=user.luckperms_group,
        role=user.role,
        forum_rank=user.forum_rank,
    )


async def _dispatch(
    db: AsyncSession, background_tasks: Optional[BackgroundTasks], payload: dict
) -> None:
    """
    Commit the link change, then schedule the webhook after the response (or
    send it now when there is no request).

    The webhook only ever describes committed state. FastAPI runs background
    tasks before the session dependency's own commit.
    """
    await db.commit()
    if payload["event"] == LINKED_EVENT:
        send = link_notifier.notify_linked
    else:
        send = link_notifier.notify_unlinked
    if background_tasks is not None:
        background_tasks.add_task(send, payload)
    else:
        await send(payload)


class LinkService:

    # ══════════════════════════════════════════════════════════════════════
    # Web-facing
    # ══════════════════════════════════════════════════════════════════════

    async def _active_code(self, db: AsyncSession, user: User) -> Optional[LinkCode]:
        result = await db.execute(
            select(LinkCode)
            .where(LinkCode.user_id == user.id, LinkCode.expires_at > utcnow())
            .order_by(LinkCode.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def status(self, db: AsyncSession, user: User) -> LinkStatusResponse:
        if user.is_linked:
            return LinkStatusResponse(
                linked=True,
                minecraft_username=user.minecraft_username,
                minecraft_uuid=user.minecraft_uuid,
                linked_at=user.linked_at,
                last_seen=user.last_seen,
            )

        code = await self._active_code(db, user)
        return LinkStatusResponse(
            linked=False,
            code=code.code if code else None,
            code_expires_at=code.expires_at if code else None,
        )

    async def generate(self, db: AsyncSession, user: User, data: LinkCodeRequest) -> LinkCodeResponse:
        if user.is_linked:
            raise ValidationError("Your account is already linked to a Minecraft account")

        expiry = data.expiry_minutes or settings.link_code_expiry_minutes
        if expiry > settings.link_code_max_expiry_minutes:
            raise ValidationError(
                f"Link codes can be valid for at most {settings.link_code_max_expiry_minutes} minutes",
                field="expiry_minutes",
            )

        minecraft_username = data.minecraft_username
        if minecraft_username:
            owner = await self._find_by_minecraft_username(db, minecraft_username)
            if owner is not None and owner.id != user.id:
                raise ConflictError(
                    "That Minecraft username is already linked to another account",
                    context={"minecraft_username": minecraft_username},
                )

        now = utcnow()
        # Replace the user's previous codes and sweep expired ones
        await db.execute(
            delete(LinkCode)
            .where(or_(LinkCode.user_id == user.id, LinkCode.expires_at <= now))
            .execution_options(synchronize_session="fetch")
        )

        code = None
        for _ in range(MAX_CODE_ATTEMPTS):
            candidate = generate_code(settings.link_code_length)
            taken = await db.execute(select(LinkCode.id).where(LinkCode.code == candidate))
            if taken.scalar_one_or_none() is None:
                code = candidate
                break
        if code is None:
            raise DatabaseError("Could not allocate a unique link code. Please try again.")

        link_code = LinkCode(
            code=code,
            user_id=user.id,
            minecraft_username=minecraft_username,
            expires_at=now + timedelta(minutes=expiry),
        )
        db.add(link_code)
        await db.flush()

        logger.info("Generated link code for user %s (valid %d min)", user.id, expiry)
        return LinkCodeResponse(
            code=code,
            expires_at=link_code.expires_at,
            expiry_minutes=expiry,
            minecraft_username=minecraft_username,
        )

    async def unlink(
        self, db: AsyncSession, user: User, background_tasks: Optional[BackgroundTasks] = None
    ) -> UnlinkResponse:
        if not user.is_linked:
            return UnlinkResponse(
                message="Your account is not linked to a Minecraft account", already_unlinked=True
            )

        payload = build_event(
            UNLINKED_EVENT, user.id, user.username, user.minecraft_uuid, user.minecraft_username
        )
        previous_name = user.minecraft_username

        user.minecraft_uuid = None
        user.minecraft_username = None
        user.linked_at = None
        user.last_seen = None
        await notification_service.notify(
            db,
            user,
            type="account_unlinked",
            message=f"Your account was unlinked from Minecraft player {previous_name}",
            data={"minecraft_username": previous_name},
        )
        await db.flush()

        logger.info("User %s unlinked Minecraft account %s", user.id, payload["minecraft_uuid"])
        await _dispatch(db, background_tasks, payload)
        return UnlinkResponse(message="Minecraft account unlinked")

    async def _find_by_minecraft_username(self, db: AsyncSession, name: str) -> Optional[User]:
        result = await db.execute(
            select(User).where(
                func.lower(User.minecraft_username) == name.strip().lower(),
                User.minecraft_uuid.is_not(None),
            )
        )
        return result.scalars().first()

    async def check_username(self, db: AsyncSession, minecraft_username: str) -> UsernameCheckResponse:
        owner = await self._find_by_minecraft_username(db, minecraft_username)
        return UsernameCheckResponse(minecraft_username=minecraft_username, linked=owner is not None)

    # ══════════════════════════════════════════════════════════════════════
    # Server-facing
    # ══════════════════════════════════════════════════════════════════════

    async def validate(
        self,
        db: AsyncSession,
        data: ServerLinkRequest,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> ServerLinkResponse:
        if not data.code or not data.code.strip():
            raise ValidationError("Link code is required", field="code")
        username = clean_minecraft_username(data.username)
        minecraft_uuid = clean_minecraft_uuid(data.uuid)
        code = data.code.strip().upper()

        result = await db.execute(select(LinkCode).where(LinkCode.code == code))
        link_code = result.scalar_one_or_none()
        if link_code is None or as_utc(link_code.expires_at) <= utcnow():
            logger.info("Rejected link attempt by %s: invalid or expired code", username)
            return ServerLinkResponse(success=False, message="Invalid or expired link code")

        if link_code.minecraft_username and link_code.minecraft_username.lower() != username.lower():
            return ServerLinkResponse(
                success=False, message="This code was generated for a different Minecraft account"
            )

        user = await user_service.get_user(db, link_code.user_id)

        owner_result = await db.execute(
            select(User.id).where(User.minecraft_uuid == minecraft_uuid, User.id != user.id)
        )
        if owner_result.scalar_one_or_none() is not None:
            raise ConflictError(
                "This Minecraft account is already linked to another user",
                context={"minecraft_uuid": minecraft_uuid},
            )

        now = utcnow()
        user.minecraft_uuid = minecraft_uuid
        user.minecraft_username = username
        user.linked_at = now
        user.last_seen = now
        await db.execute(delete(LinkCode).where(LinkCode.user_id == user.id))
        await notification_service.notify(
            db,
            user,
            type="minecraft_linked",
            message=f"Your account is now linked to Minecraft player {username}",
            data={"minecraft_username": username, "minecraft_uuid": minecraft_uuid},
        )
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError(
                "This Minecraft account is already linked to another user",
                context={"minecraft_uuid": minecraft_uuid},
            ) from e

        logger.info("Linked user %s to Minecraft %s (%s)", user.id, username, minecraft_uuid)
        await _dispatch(
            db,
            background_tasks,
            build_event(LINKED_EVENT, user.id, user.username, minecraft_uuid, username),
        )
        return ServerLinkResponse(
            success=True,
            message=f"Linked to website account {user.username}",
            user=linked_account(user),
        )

    async def pending(self, db: AsyncSession, data: ServerPlayerRequest) -> PendingLinkResponse:
        username = clean_minecraft_username(data.username)
        if data.uuid:
            clean_minecraft_uuid(data.uuid)

        result = await db.execute(
            select(LinkCode)
            .join(User, User.id == LinkCode.user_id)
            .where(
                func.lower(LinkCode.minecraft_username) == username.lower(),
                LinkCode.expires_at > utcnow(),
                User.minecraft_uuid.is_(None),
            )
            .order_by(LinkCode.created_at.desc())
            .limit(1)
        )
        link_code = result.scalar_one_or_none()
        if link_code is None:
            return PendingLinkResponse(pending=False)
        return PendingLinkResponse(pending=True, expires_at=link_code.expires_at)

    async def lookup(self, db: AsyncSession, data: ServerPlayerRequest) -> ServerLinkResponse:
        if not data.uuid and not data.username:
            raise ValidationError("A Minecraft username or UUID is required")

        user = None
        if data.uuid:
            minecraft_uuid = clean_minecraft_uuid(data.uuid)
            result = await db.execute(select(User).where(User.minecraft_uuid == minecraft_uuid))
            user = result.scalar_one_or_none()
        if user is None and data.username:
            user = await self._find_by_minecraft_username(db, clean_minecraft_username(data.username))

        if user is None:
            return ServerLinkResponse(success=False, message="No linked account found")

        user.last_seen = utcnow()
        await db.flush()
        return ServerLinkResponse(success=True, message="Linked account found", user=linked_account(user))

    async def seen(self, db: AsyncSession, data: ServerPlayerRequest) -> ServerLinkResponse:
        minecraft_uuid = clean_minecraft_uuid(data.uuid)
        result = await db.execute(select(User).where(User.minecraft_uuid == minecraft_uuid))
        user = result.scalar_one_or_none()
        if user is None:
            return ServerLinkResponse(success=False, message="No linked account found")

        user.last_seen = utcnow()
        await db.flush()
        return ServerLinkResponse(success=True, message="Last seen updated", user=linked_account(user))


link_service = LinkService()
