"""
BizzyLink Backend: Minecraft Linking Schemas
==============================================

Web-facing models (status, code generation, unlink) and server-facing
models used by the Minecraft plugin.

The plugin-facing request models accept loose strings on purpose: the
service validates them and answers malformed input with a 400 envelope the
plugin already understands, rather than FastAPI's 422.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from bizzylink.schemas.common import USERNAME_PATTERN


class LinkCodeRequest(BaseModel):
    minecraft_username: Optional[str] = Field(
        default=None, min_length=3, max_length=16, pattern=USERNAME_PATTERN
    )
    expiry_minutes: Optional[int] = Field(default=None, ge=1)


class LinkCodeResponse(BaseModel):
    code: str
    expires_at: datetime
    expiry_minutes: int
    minecraft_username: Optional[str] = None


class LinkStatusResponse(BaseModel):
    linked: bool
    minecraft_username: Optional[str] = None
    minecraft_uuid: Optional[str] = None
    linked_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    code: Optional[str] = None
    code_expires_at: Optional[datetime] = None


class UnlinkResponse(BaseModel):
    message: str
    already_unlinked: bool = False


class UsernameCheckResponse(BaseModel):
    minecraft_username: str
    linked: bool


# ══════════════════════════════════════════════════════════════════════════
# Server-facing (X-Server-Key)
# ══════════════════════════════════════════════════════════════════════════


class ServerLinkRequest(BaseModel):
    username: Optional[str] = None
    uuid: Optional[str] = None
    code: Optional[str] = None


class ServerPlayerRequest(BaseModel):
    username: Optional[str] = None
    uuid: Optional[str] = None


class LinkedAccount(BaseModel):
    user_id: uuid.UUID
    username: str
    minecraft_username: Optional[str] = None
    minecraft_uuid: Optional[str] = None
    luckperms_group: str
    role: str
    forum_rank: str


class ServerLinkResponse(BaseModel):
    success: bool
    message: str
    user: Optional[LinkedAccount] = None


class PendingLinkResponse(BaseModel):
    success: bool = True
    pending: bool
    expires_at: Optional[datetime] = None
