"""
BizzyLink Backend: Notification Routes
========================================
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import get_db_session
from bizzylink.dependencies import get_current_user
from bizzylink.models.user import User
from bizzylink.schemas.common import ErrorResponse, MessageResponse
from bizzylink.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationReadRequest,
)
from bizzylink.services.notification_service import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

_OWNERSHIP = {
    403: {"description": "Not your notification", "model": ErrorResponse},
    404: {"description": "Notification not found", "model": ErrorResponse},
}


@router.get("", response_model=NotificationListResponse, summary="Newest notifications")
async def list_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    return await notification_service.list_for_user(db, user.id)


@router.post("/read", response_model=MessageResponse, responses=_OWNERSHIP, summary="Mark one read")
async def mark_read(
    data: NotificationReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.mark_read(db, user.id, data.notification_id)
    return MessageResponse(message="Notification marked as read")


@router.post("/read-all", response_model=MarkAllReadResponse, summary="Mark all read")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    marked = await notification_service.mark_all_read(db, user.id)
    return MarkAllReadResponse(message=f"Marked {marked} notifications as read", marked=marked)


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    responses=_OWNERSHIP,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await notification_service.delete(db, user.id, notification_id)
    return MessageResponse(message="Notification deleted")
