"""
BizzyLink Backend: Notification Service
=========================================

What:  Creates in-site notifications and serves the recipient's inbox.
Who:   `notify` is called by the social, reputation, user and linking
       services; the rest backs the /api/notifications routes.

Opt-outs:
    Callers pass the name of the recipient's notification setting
    (`friend_requests`, `reputation`, ...). When the recipient turned that
    category off nothing is written. System notifications (account linked,
    unlinked) pass no setting and are always written.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.exceptions import NotFoundError, PermissionDeniedError
from bizzylink.models.notification import Notification
from bizzylink.models.user import User
from bizzylink.schemas.notification import NotificationListResponse, NotificationResponse

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50


class NotificationService:

    async def notify(
        self,
        db: AsyncSession,
        recipient: User,
        type: str,
        message: str,
        sender_id: Optional[UUID] = None,
        data: Optional[Dict[str, Any]] = None,
        setting: Optional[str] = None,
    ) -> Optional[Notification]:
        if setting and not recipient.wants_notification(setting):
            logger.debug("User %s opted out of %s notifications", recipient.id, setting)
            return None

        notification = Notification(
            recipient_id=recipient.id,
            sender_id=sender_id,
            type=type,
            message=message,
            data=data or {},
            is_read=False,
        )
        db.add(notification)
        return notification

    async def list_for_user(self, db: AsyncSession, user_id: UUID) -> NotificationListResponse:
        result = await db.execute(
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(INBOX_LIMIT)
        )
        notifications = result.scalars().all()

        unread_result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
        )
        unread = unread_result.scalar() or 0

        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            unread_count=unread,
        )

    async def _get_owned(
        self, db: AsyncSession, user_id: UUID, notification_id: UUID
    ) -> Notification:
        result = await db.execute(select(Notification).where(Notification.id == notification_id))
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        if notification.recipient_id != user_id:
            raise PermissionDeniedError("Not authorized to modify this notification")
        return notification

    async def mark_read(self, db: AsyncSession, user_id: UUID, notification_id: UUID) -> None:
        notification = await self._get_owned(db, user_id, notification_id)
        notification.is_read = True
        await db.flush()

    async def mark_all_read(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.recipient_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def delete(self, db: AsyncSession, user_id: UUID, notification_id: UUID) -> None:
        notification = await self._get_owned(db, user_id, notification_id)
        await db.delete(notification)
        await db.flush()


notification_service = NotificationService()
