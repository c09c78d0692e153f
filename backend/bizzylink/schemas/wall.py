"""
BizzyLink Backend: Profile Wall Schemas
=========================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


SystemPostType = Literal["system", "achievement", "friend", "game"]


class WallPostCreate(BaseModel):
    content: str = Field(min_length=1, max_length=500)
    image: Optional[str] = Field(default=None, max_length=500)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content cannot be empty")
        return v


class SystemPostCreate(BaseModel):
    type: SystemPostType
    content: str = Field(default="", max_length=500)
    data: Optional[Dict[str, Any]] = None


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=300)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content cannot be empty")
        return v


class RepostCreate(BaseModel):
    message: Optional[str] = Field(default=None, max_length=200)


class BulkDeleteRequest(BaseModel):
    post_ids: List[uuid.UUID] = Field(min_length=1, max_length=100)


class WallCommentResponse(BaseModel):
    id: uuid.UUID
    post_id: uuid.UUID
    author_id: uuid.UUID
    author_username: Optional[str] = None
    author_avatar: Optional[str] = None
    content: str
    created_at: datetime


class OriginalPost(BaseModel):
    """The post a repost points at."""
    id: uuid.UUID
    author_id: uuid.UUID
    author_username: Optional[str] = None
    recipient_id: uuid.UUID
    content: str
    image: Optional[str] = None
    created_at: datetime


class WallPostResponse(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    author_username: Optional[str] = None
    author_avatar: Optional[str] = None
    recipient_id: uuid.UUID
    content: str
    image: Optional[str] = None
    type: str
    data: Optional[Dict[str, Any]] = None
    is_repost: bool = False
    repost_message: Optional[str] = None
    # None on a repost whose original was deleted
    original_post: Optional[OriginalPost] = None
    like_count: int = 0
    liked_by_me: bool = False
    comment_count: int = 0
    repost_count: int = 0
    view_count: int = 0
    comments: List[WallCommentResponse] = Field(default_factory=list)
    created_at: datetime


class WallPostListResponse(BaseModel):
    posts: List[WallPostResponse]
    page: int
    limit: int
    total: int
    total_pages: int


class CommentListResponse(BaseModel):
    comments: List[WallCommentResponse]


class BulkDeleteResponse(BaseModel):
    deleted: List[uuid.UUID]
    failed: List[uuid.UUID]


class ViewResponse(BaseModel):
    view_count: int


class RepostStatusResponse(BaseModel):
    has_reposted: bool
    repost_count: int
