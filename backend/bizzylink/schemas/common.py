"""
BizzyLink Backend: Shared Schemas
===================================

What:  Response models shared by several routers: error envelope, health,
       plain messages and the compact user reference embedded in lists.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "You cannot give reputation to yourself",
            "details": {"field": "user_id"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or degraded")
    database: str = Field(description="connected or unreachable")
    uptime_seconds: float = Field(description="Seconds since the process started")
    version: str = Field(description="Application version")


class MessageResponse(BaseModel):
    message: str = Field(description="Human-readable result")


class UserSummary(BaseModel):
    """Compact user reference used inside lists (friends, followers, authors)."""
    id: uuid.UUID
    username: str
    avatar: Optional[str] = None
    forum_rank: str = "user"
    minecraft_username: Optional[str] = None
    last_active: Optional[datetime] = None

    model_config = {"from_attributes": True}
