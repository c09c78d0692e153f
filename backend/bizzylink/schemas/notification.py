"""
BizzyLink Backend: Notification Schemas
=========================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str
    message: str
    sender_id: Optional[uuid.UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int


class NotificationReadRequest(BaseModel):
    notification_id: uuid.UUID


class MarkAllReadResponse(BaseModel):
    message: str
    marked: int
