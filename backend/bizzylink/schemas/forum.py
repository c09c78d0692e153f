"""
BizzyLink Backend: Forum Schemas
==================================

Request and response models for categories, threads, posts, likes, search,
reputation and vouches.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


ForumRank = Literal["user", "trusted", "moderator", "admin"]


# ══════════════════════════════════════════════════════════════════════════
# Categories
# ══════════════════════════════════════════════════════════════════════════


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    icon: str = Field(default="chat", max_length=50)
    display_order: int = Field(default=0, ge=0)
    is_active: bool = True
    requires_auth: bool = False
    required_rank: Optional[ForumRank] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Category name cannot be blank")
        return v


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=50)
    display_order: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    requires_auth: Optional[bool] = None
    required_rank: Optional[ForumRank] = None


class CategoryResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    description: str
    icon: str
    display_order: int
    is_active: bool
    requires_auth: bool
    required_rank: Optional[str] = None
    thread_count: int
    post_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


# ══════════════════════════════════════════════════════════════════════════
# Threads and Posts
# ══════════════════════════════════════════════════════════════════════════


class ThreadCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    content: str = Field(min_length=1, max_length=20000)
    category_id: uuid.UUID
    tags: List[str] = Field(default_factory=list, max_length=5)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Title must be at least 3 characters")
        return v


class ThreadUpdate(BaseModel):
    """Title is open to the author; the other fields need a forum admin."""
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    is_pinned: Optional[bool] = None
    is_locked: Optional[bool] = None
    category_id: Optional[uuid.UUID] = None


class ThreadItem(BaseModel):
    id: uuid.UUID
    title: str
    slug: str
    category_id: uuid.UUID
    author_id: Optional[uuid.UUID] = None
    author_username: Optional[str] = None
    is_pinned: bool
    is_locked: bool
    views: int
    reply_count: int
    tags: List[str] = Field(default_factory=list)
    last_post_at: Optional[datetime] = None
    last_post_author_username: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ThreadListResponse(BaseModel):
    category: CategoryResponse
    threads: List[ThreadItem]
    page: int
    limit: int
    total: int
    total_pages: int


class PostCreate(BaseModel):
    content: str = Field(min_length=1, max_length=20000)


class PostUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=20000)


class PostResponse(BaseModel):
    id: uuid.UUID
    thread_id: uuid.UUID
    author_id: Optional[uuid.UUID] = None
    author_username: Optional[str] = None
    author_signature: Optional[str] = None
    content: str
    is_first_post: bool
    like_count: int = 0
    liked_by_me: bool = False
    edited_at: Optional[datetime] = None
    edited_by_id: Optional[uuid.UUID] = None
    created_at: datetime


class ThreadDetailResponse(BaseModel):
    thread: ThreadItem
    posts: List[PostResponse]
    page: int
    limit: int
    total_posts: int
    total_pages: int


class PostSearchItem(BaseModel):
    id: uuid.UUID
    thread_id: uuid.UUID
    thread_title: str
    author_id: Optional[uuid.UUID] = None
    author_username: Optional[str] = None
    content: str
    created_at: datetime


class LikeResponse(BaseModel):
    liked: bool
    like_count: int


class SearchResponse(BaseModel):
    query: str
    threads: List[ThreadItem]
    posts: List[PostSearchItem]
    page: int
    limit: int
    total_posts: int


# ══════════════════════════════════════════════════════════════════════════
# Reputation and Vouches
# ══════════════════════════════════════════════════════════════════════════


class ReputationRequest(BaseModel):
    # Checked for ±1 by the service so a bad value is a 400, like the other rules
    value: int


class ReputationResponse(BaseModel):
    message: str
    new_reputation: int
    positive_count: int
    negative_count: int


class VouchRequest(BaseModel):
    context: str = Field(default="", max_length=500)


class VouchResponse(BaseModel):
    message: str
    vouches: int
    updated: bool
