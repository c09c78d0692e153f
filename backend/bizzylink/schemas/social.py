"""
BizzyLink Backend: Friends and Following Schemas
==================================================
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from bizzylink.schemas.common import UserSummary


class UsernameRequest(BaseModel):
    username: str = Field(min_length=1, max_length=20)


class FriendRequestAction(BaseModel):
    request_id: uuid.UUID


class FriendRemoveRequest(BaseModel):
    friend_id: uuid.UUID


class FriendRequestItem(BaseModel):
    id: uuid.UUID
    sender: UserSummary
    status: str
    created_at: datetime


class FriendRequestList(BaseModel):
    requests: List[FriendRequestItem]


class UserList(BaseModel):
    users: List[UserSummary]
    count: int


class FollowResponse(BaseModel):
    message: str
    already_following: bool = False


class UnfollowResponse(BaseModel):
    message: str
    was_following: bool
