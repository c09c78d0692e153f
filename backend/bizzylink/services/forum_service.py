"""
BizzyLink Backend: Forum Service
==================================

What:  Business rules for categories, threads, posts, likes and search.
Who:   Called by the /api/forum routes and by the admin forum tools.

Counters:
    Category thread/post counts, thread reply counts and user thread/post
    counts are denormalized. Every operation that creates, moves or deletes
    a thread or post adjusts them in the same transaction, so they always
    match the rows they summarize.

Authorization summary:
    ┌──────────────────────────┬──────────────────────────────────────────┐
    │ Category create/edit/del │ forum admin                              │
    │ Thread title             │ author or forum admin                    │
    │ Pin / lock / move        │ forum admin                              │
    │ Thread delete            │ author or forum admin                    │
    │ Reply to locked thread   │ forum moderator                          │
    │ Post edit/delete         │ author or forum moderator                │
    │                          │ (locked thread: forum moderator only)    │
    └──────────────────────────┴──────────────────────────────────────────┘
"""

import logging
import math
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import apply_deltas, utcnow
from bizzylink.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from bizzylink.models.forum import ForumCategory, ForumPost, ForumThread, PostLike
from bizzylink.models.user import User
from bizzylink.schemas.forum import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    LikeResponse,
    PostResponse,
    PostSearchItem,
    SearchResponse,
    ThreadCreate,
    ThreadDetailResponse,
    ThreadItem,
    ThreadListResponse,
    ThreadUpdate,
)

logger = logging.getLogger(__name__)

RANK_ORDER = {"user": 0, "trusted": 1, "moderator": 2, "admin": 3}
THREAD_SEARCH_LIMIT = 10


def slugify(text: str) -> str:
    """
    URL slug: lower-case, whitespace to '-', non-word characters dropped,
    repeated dashes collapsed, edge dashes trimmed.
    """
    slug = text.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w-]", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def can_view_category(category: ForumCategory, viewer: Optional[User]) -> bool:
    if viewer is not None and viewer.is_forum_admin:
        return True
    if not category.is_active:
        return False
    if (category.requires_auth or category.required_rank) and viewer is None:
        return False
    if category.required_rank and viewer is not None:
        return RANK_ORDER.get(viewer.forum_rank, 0) >= RANK_ORDER.get(category.required_rank, 0)
    return True


class ForumService:
    """
    Stateless; each method receives the request's session.

    Services flush but never commit; the request-scoped session dependency
    commits once the route returns.
    """

    # ══════════════════════════════════════════════════════════════════════
    # Response Builders
    # ══════════════════════════════════════════════════════════════════════

    async def usernames(self, db: AsyncSession, user_ids: Iterable[Optional[UUID]]) -> Dict[UUID, str]:
        ids = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.username).where(User.id.in_(ids)))
        return {row[0]: row[1] for row in result.all()}

    async def thread_items(self, db: AsyncSession, threads: Sequence[ForumThread]) -> List[ThreadItem]:
        names = await self.usernames(
            db,
            [t.author_id for t in threads] + [t.last_post_author_id for t in threads],
        )
        return [
            ThreadItem(
                id=t.id,
                title=t.title,
                slug=t.slug,
                category_id=t.category_id,
                author_id=t.author_id,
                author_username=names.get(t.author_id),
                is_pinned=t.is_pinned,
                is_locked=t.is_locked,
                views=t.views,
                reply_count=t.reply_count,
                tags=list(t.tags or []),
                last_post_at=t.last_post_at,
                last_post_author_username=names.get(t.last_post_author_id),
                created_at=t.created_at,
                updated_at=t.updated_at,
            )
            for t in threads
        ]

    async def post_search_items(
        self, db: AsyncSession, rows: Sequence[Tuple[ForumPost, str]]
    ) -> List[PostSearchItem]:
        """Builds items from (post, thread_title) rows."""
        names = await self.usernames(db, [post.author_id for post, _ in rows])
        return [
            PostSearchItem(
                id=post.id,
                thread_id=post.thread_id,
                thread_title=title,
                author_id=post.author_id,
                author_username=names.get(post.author_id),
                content=post.content,
                created_at=post.created_at,
            )
            for post, title in rows
        ]

    async def _post_responses(
        self, db: AsyncSession, posts: Sequence[ForumPost], viewer: Optional[User]
    ) -> List[PostResponse]:
        post_ids = [p.id for p in posts]
        author_ids = {p.author_id for p in posts if p.author_id is not None}

        authors: Dict[UUID, Tuple[str, str]] = {}
        if author_ids:
            result = await db.execute(
                select(User.id, User.username, User.signature).where(User.id.in_(author_ids))
            )
            authors = {row[0]: (row[1], row[2]) for row in result.all()}

        like_counts: Dict[UUID, int] = {}
        liked: set = set()
        if post_ids:
            result = await db.execute(
                select(PostLike.post_id, func.count())
                .where(PostLike.post_id.in_(post_ids))
                .group_by(PostLike.post_id)
            )
            like_counts = {row[0]: row[1] for row in result.all()}
            if viewer is not None:
                result = await db.execute(
                    select(PostLike.post_id).where(
                        PostLike.post_id.in_(post_ids), PostLike.user_id == viewer.id
                    )
                )
                liked = set(result.scalars().all())

        responses = []
        for post in posts:
            username, signature = authors.get(post.author_id, (None, None))
            responses.append(
                PostResponse(
                    id=post.id,
                    thread_id=post.thread_id,
                    author_id=post.author_id,
                    author_username=username,
                    author_signature=signature or None,
                    content=post.content,
                    is_first_post=post.is_first_post,
                    like_count=like_counts.get(post.id, 0),
                    liked_by_me=post.id in liked,
                    edited_at=post.edited_at,
                    edited_by_id=post.edited_by_id,
                    created_at=post.created_at,
                )
            )
        return responses

    # ══════════════════════════════════════════════════════════════════════
    # Categories
    # ══════════════════════════════════════════════════════════════════════

    async def list_categories(self, db: AsyncSession, viewer: Optional[User]) -> List[CategoryResponse]:
        result = await db.execute(
            select(ForumCategory).order_by(ForumCategory.display_order, ForumCategory.name)
        )
        categories = result.scalars().all()
        admin = viewer is not None and viewer.is_forum_admin
        return [
            CategoryResponse.model_validate(c)
            for c in categories
            if admin or c.is_active
        ]

    async def get_category(self, db: AsyncSession, category_id: UUID) -> ForumCategory:
        result = await db.execute(select(ForumCategory).where(ForumCategory.id == category_id))
        category = result.scalar_one_or_none()
        if category is None:
            raise NotFoundError(resource="category", resource_id=str(category_id))
        return category

    def _check_category_access(self, category: ForumCategory, viewer: Optional[User]) -> None:
        if can_view_category(category, viewer):
            return
        if not category.is_active:
            raise NotFoundError(resource="category", resource_id=str(category.id))
        if viewer is None:
            raise AuthenticationError("You must be logged in to view this category")
        raise PermissionDeniedError(
            f"The {category.required_rank} forum rank is required to view this category"
        )

    async def _visible_category_ids(self, db: AsyncSession, viewer: Optional[User]) -> List[UUID]:
        result = await db.execute(select(ForumCategory))
        return [c.id for c in result.scalars().all() if can_view_category(c, viewer)]

    async def _ensure_unique_slug(
        self, db: AsyncSession, slug: str, exclude_id: Optional[UUID] = None
    ) -> None:
        query = select(ForumCategory.id).where(ForumCategory.slug == slug)
        if exclude_id is not None:
            query = query.where(ForumCategory.id != exclude_id)
        result = await db.execute(query)
        if result.scalar_one_or_none() is not None:
            raise ConflictError(
                f"A category with the slug '{slug}' already exists",
                context={"slug": slug},
            )

    async def create_category(self, db: AsyncSession, data: CategoryCreate) -> CategoryResponse:
        slug = slugify(data.name)
        if not slug:
            raise ValidationError("Category name must contain letters or digits", field="name")
        await self._ensure_unique_slug(db, slug)

        category = ForumCategory(slug=slug, **data.model_dump())
        db.add(category)
        await db.flush()
        logger.info("Created forum category '%s'", slug)
        return CategoryResponse.model_validate(category)

    async def update_category(
        self, db: AsyncSession, category_id: UUID, data: CategoryUpdate
    ) -> CategoryResponse:
        category = await self.get_category(db, category_id)
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes and changes["name"] is not None:
            slug = slugify(changes["name"])
            if not slug:
                raise ValidationError("Category name must contain letters or digits", field="name")
            await self._ensure_unique_slug(db, slug, exclude_id=category.id)
            category.slug = slug

        for field, value in changes.items():
            if value is None and field != "required_rank":
                continue
            setattr(category, field, value)

        await db.flush()
        return CategoryResponse.model_validate(category)

    async def delete_category(self, db: AsyncSession, category_id: UUID) -> None:
        category = await self.get_category(db, category_id)
        result = await db.execute(
            select(func.count()).select_from(ForumThread).where(ForumThread.category_id == category.id)
        )
        if (result.scalar() or 0) > 0:
            raise ValidationError(
                "Cannot delete a category that still contains threads. Move or delete them first."
            )
        await db.delete(category)
        await db.flush()
        logger.info("Deleted forum category '%s'", category.slug)

    async def list_category_threads(
        self,
        db: AsyncSession,
        category_id: UUID,
        viewer: Optional[User],
        page: int = 1,
        limit: int = 10,
    ) -> ThreadListResponse:
        category = await self.get_category(db, category_id)
        self._check_category_access(category, viewer)

        count_result = await db.execute(
            select(func.count()).select_from(ForumThread).where(ForumThread.category_id == category.id)
        )
        total = count_result.scalar() or 0

        result = await db.execute(
            select(ForumThread)
            .where(ForumThread.category_id == category.id)
            .order_by(
                ForumThread.is_pinned.desc(),
                ForumThread.last_post_at.desc(),
                ForumThread.created_at.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        threads = result.scalars().all()

        return ThreadListResponse(
            category=CategoryResponse.model_validate(category),
            threads=await self.thread_items(db, threads),
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
        )

    # ══════════════════════════════════════════════════════════════════════
    # Threads
    # ══════════════════════════════════════════════════════════════════════

    async def get_thread_row(self, db: AsyncSession, thread_id: UUID) -> ForumThread:
        result = await db.execute(select(ForumThread).where(ForumThread.id == thread_id))
        thread = result.scalar_one_or_none()
        if thread is None:
            raise NotFoundError(resource="thread", resource_id=str(thread_id))
        return thread

    async def create_thread(self, db: AsyncSession, author: User, data: ThreadCreate) -> ThreadItem:
        category = await self.get_category(db, data.category_id)
        if not category.is_active:
            raise ValidationError("This category is not accepting new threads", field="category_id")
        self._check_category_access(category, author)

        now = utcnow()
        thread = ForumThread(
            title=data.title,
            slug=slugify(data.title) or "thread",
            category_id=category.id,
            author_id=author.id,
            tags=[tag.strip() for tag in data.tags if tag.strip()],
            last_post_author_id=author.id,
            last_post_at=now,
        )
        db.add(thread)
        await db.flush()

        db.add(
            ForumPost(
                thread_id=thread.id,
                author_id=author.id,
                content=data.content,
                is_first_post=True,
                created_at=now,
            )
        )

        author.last_active = now
        await db.flush()
        await apply_deltas(db, category, {"thread_count": 1, "post_count": 1})
        await apply_deltas(db, author, {"thread_count": 1, "post_count": 1})

        logger.info("User %s created thread %s in '%s'", author.id, thread.id, category.slug)
        return (await self.thread_items(db, [thread]))[0]

    async def get_thread(
        self,
        db: AsyncSession,
        thread_id: UUID,
        viewer: Optional[User],
        page: int = 1,
        limit: int = 20,
    ) -> ThreadDetailResponse:
        thread = await self.get_thread_row(db, thread_id)
        category = await self.get_category(db, thread.category_id)
        self._check_category_access(category, viewer)

        count_result = await db.execute(
            select(func.count()).select_from(ForumPost).where(ForumPost.thread_id == thread.id)
        )
        total_posts = count_result.scalar() or 0

        result = await db.execute(
            select(ForumPost)
            .where(ForumPost.thread_id == thread.id)
            .order_by(ForumPost.created_at.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        posts = result.scalars().all()

        await apply_deltas(db, thread, {"views": 1})

        return ThreadDetailResponse(
            thread=(await self.thread_items(db, [thread]))[0],
            posts=await self._post_responses(db, posts, viewer),
            page=page,
            limit=limit,
            total_posts=total_posts,
            total_pages=total_pages(total_posts, limit),
        )

    async def moderate_thread(
        self,
        db: AsyncSession,
        thread: ForumThread,
        is_pinned: Optional[bool] = None,
        is_locked: Optional[bool] = None,
        category_id: Optional[UUID] = None,
    ) -> None:
        """Pin/lock/move; callers have already checked for forum-admin rights."""
        if is_pinned is not None:
            thread.is_pinned = is_pinned
        if is_locked is not None:
            thread.is_locked = is_locked

        if category_id is not None and category_id != thread.category_id:
            target = await self.get_category(db, category_id)
            count_result = await db.execute(
                select(func.count()).select_from(ForumPost).where(ForumPost.thread_id == thread.id)
            )
            post_total = count_result.scalar() or 0

            source_result = await db.execute(
                select(ForumCategory).where(ForumCategory.id == thread.category_id)
            )
            source = source_result.scalar_one_or_none()
            if source is not None:
                await apply_deltas(db, source, {"thread_count": -1, "post_count": -post_total})
            await apply_deltas(db, target, {"thread_count": 1, "post_count": post_total})
            thread.category_id = target.id
            logger.info("Moved thread %s to category '%s'", thread.id, target.slug)

        await db.flush()

    async def update_thread(
        self, db: AsyncSession, thread_id: UUID, user: User, data: ThreadUpdate
    ) -> ThreadItem:
        thread = await self.get_thread_row(db, thread_id)
        is_admin = user.is_forum_admin

        if thread.author_id != user.id and not is_admin:
            raise PermissionDeniedError("Only the author or a forum administrator can edit this thread")

        wants_moderation = (
            data.is_pinned is not None or data.is_locked is not None or data.category_id is not None
        )
        if wants_moderation and not is_admin:
            raise PermissionDeniedError("Only forum administrators can pin, lock or move threads")

        if data.title is not None:
            title = data.title.strip()
            if len(title) < 3:
                raise ValidationError("Title must be at least 3 characters", field="title")
            thread.title = title
            thread.slug = slugify(title) or "thread"

        await self.moderate_thread(
            db, thread, is_pinned=data.is_pinned, is_locked=data.is_locked, category_id=data.category_id
        )
        return (await self.thread_items(db, [thread]))[0]

    async def remove_thread(self, db: AsyncSession, thread: ForumThread) -> int:
        """
        Delete a thread with its posts and likes and fix every counter.

        Returns:
            Number of posts removed
        """
        posts_result = await db.execute(
            select(ForumPost.author_id, func.count())
            .where(ForumPost.thread_id == thread.id)
            .group_by(ForumPost.author_id)
        )
        per_author = {row[0]: row[1] for row in posts_result.all()}
        post_total = sum(per_author.values())

        author_ids = {aid for aid in per_author if aid is not None}
        if thread.author_id is not None:
            author_ids.add(thread.author_id)
        if author_ids:
            users_result = await db.execute(select(User).where(User.id.in_(author_ids)))
            for author in users_result.scalars().all():
                await apply_deltas(
                    db,
                    author,
                    {
                        "post_count": -per_author.get(author.id, 0),
                        "thread_count": -1 if author.id == thread.author_id else 0,
                    },
                )

        category_result = await db.execute(
            select(ForumCategory).where(ForumCategory.id == thread.category_id)
        )
        category = category_result.scalar_one_or_none()
        if category is not None:
            await apply_deltas(db, category, {"thread_count": -1, "post_count": -post_total})

        post_ids = select(ForumPost.id).where(ForumPost.thread_id == thread.id)
        await db.execute(delete(PostLike).where(PostLike.post_id.in_(post_ids)))
        await db.execute(delete(ForumPost).where(ForumPost.thread_id == thread.id))
        await db.delete(thread)
        await db.flush()

        logger.info("Deleted thread %s (%d posts)", thread.id, post_total)
        return post_total

    async def delete_thread(self, db: AsyncSession, thread_id: UUID, user: User) -> None:
        thread = await self.get_thread_row(db, thread_id)
        if thread.author_id != user.id and not user.is_forum_admin:
            raise PermissionDeniedError("Only the author or a forum administrator can delete this thread")
        await self.remove_thread(db, thread)

    # ══════════════════════════════════════════════════════════════════════
    # Posts
    # ══════════════════════════════════════════════════════════════════════

    async def get_post_row(self, db: AsyncSession, post_id: UUID) -> ForumPost:
        result = await db.execute(select(ForumPost).where(ForumPost.id == post_id))
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))
        return post

    async def create_post(
        self, db: AsyncSession, thread_id: UUID, author: User, content: str
    ) -> PostResponse:
        thread = await self.get_thread_row(db, thread_id)
        category = await self.get_category(db, thread.category_id)
        self._check_category_access(category, author)

        if thread.is_locked and not author.is_forum_moderator:
            raise PermissionDeniedError("This thread is locked")

        now = utcnow()
        post = ForumPost(thread_id=thread.id, author_id=author.id, content=content, created_at=now)
        db.add(post)

        thread.last_post_author_id = author.id
        thread.last_post_at = now
        author.last_active = now
        await db.flush()
        await apply_deltas(db, thread, {"reply_count": 1})
        await apply_deltas(db, category, {"post_count": 1})
        await apply_deltas(db, author, {"post_count": 1})

        return (await self._post_responses(db, [post], author))[0]

    async def edit_post(self, db: AsyncSession, post: ForumPost, editor: User, content: str) -> PostResponse:
        post.content = content
        post.edited_at = utcnow()
        post.edited_by_id = editor.id
        await db.flush()
        return (await self._post_responses(db, [post], editor))[0]

    async def update_post(
        self, db: AsyncSession, post_id: UUID, user: User, content: str
    ) -> PostResponse:
        post = await self.get_post_row(db, post_id)
        moderator = user.is_forum_moderator

        if post.author_id != user.id and not moderator:
            raise PermissionDeniedError("Only the author or a moderator can edit this post")

        thread = await self.get_thread_row(db, post.thread_id)
        if thread.is_locked and not moderator:
            raise PermissionDeniedError("This thread is locked")

        return await self.edit_post(db, post, user, content)

    async def remove_post(self, db: AsyncSession, post: ForumPost) -> bool:
        """
        Delete a post and fix counters.

        Returns:
            True when the post opened its thread and the whole thread went with it
        """
        thread = await self.get_thread_row(db, post.thread_id)
        if post.is_first_post:
            await self.remove_thread(db, thread)
            return True

        await db.execute(delete(PostLike).where(PostLike.post_id == post.id))
        await db.delete(post)
        await db.flush()

        await apply_deltas(db, thread, {"reply_count": -1})

        category_result = await db.execute(
            select(ForumCategory).where(ForumCategory.id == thread.category_id)
        )
        category = category_result.scalar_one_or_none()
        if category is not None:
            await apply_deltas(db, category, {"post_count": -1})

        if post.author_id is not None:
            author_result = await db.execute(select(User).where(User.id == post.author_id))
            author = author_result.scalar_one_or_none()
            if author is not None:
                await apply_deltas(db, author, {"post_count": -1})

        latest_result = await db.execute(
            select(ForumPost)
            .where(ForumPost.thread_id == thread.id)
            .order_by(ForumPost.created_at.desc())
            .limit(1)
        )
        latest = latest_result.scalar_one_or_none()
        if latest is not None:
            thread.last_post_author_id = latest.author_id
            thread.last_post_at = latest.created_at

        await db.flush()
        return False

    async def delete_post(self, db: AsyncSession, post_id: UUID, user: User) -> bool:
        post = await self.get_post_row(db, post_id)
        moderator = user.is_forum_moderator
        if post.author_id != user.id and not moderator:
            raise PermissionDeniedError("Only the author or a moderator can delete this post")

        thread = await self.get_thread_row(db, post.thread_id)
        if thread.is_locked and not moderator:
            raise PermissionDeniedError("This thread is locked")

        return await self.remove_post(db, post)

    async def toggle_like(self, db: AsyncSession, post_id: UUID, user: User) -> LikeResponse:
        post = await self.get_post_row(db, post_id)

        result = await db.execute(
            select(PostLike).where(PostLike.post_id == post.id, PostLike.user_id == user.id)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            await db.delete(existing)
            liked = False
        else:
            db.add(PostLike(post_id=post.id, user_id=user.id))
            liked = True
        await db.flush()

        count_result = await db.execute(
            select(func.count()).select_from(PostLike).where(PostLike.post_id == post.id)
        )
        return LikeResponse(liked=liked, like_count=count_result.scalar() or 0)

    # ══════════════════════════════════════════════════════════════════════
    # Search and Activity
    # ══════════════════════════════════════════════════════════════════════

    async def search(
        self,
        db: AsyncSession,
        query: str,
        viewer: Optional[User],
        page: int = 1,
        limit: int = 20,
    ) -> SearchResponse:
        term = query.strip()
        if len(term) < 2:
            raise ValidationError("Search query must be at least 2 characters", field="q")

        pattern = f"%{escape_like(term)}%"
        visible = await self._visible_category_ids(db, viewer)

        thread_result = await db.execute(
            select(ForumThread)
            .where(ForumThread.category_id.in_(visible), ForumThread.title.ilike(pattern, escape="\\"))
            .order_by(ForumThread.last_post_at.desc())
            .limit(THREAD_SEARCH_LIMIT)
        )
        threads = thread_result.scalars().all()

        post_filter = (
            ForumThread.category_id.in_(visible),
            ForumPost.content.ilike(pattern, escape="\\"),
        )
        count_result = await db.execute(
            select(func.count())
            .select_from(ForumPost)
            .join(ForumThread, ForumThread.id == ForumPost.thread_id)
            .where(*post_filter)
        )
        total_posts = count_result.scalar() or 0

        post_result = await db.execute(
            select(ForumPost, ForumThread.title)
            .join(ForumThread, ForumThread.id == ForumPost.thread_id)
            .where(*post_filter)
            .order_by(ForumPost.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        return SearchResponse(
            query=term,
            threads=await self.thread_items(db, threads),
            posts=await self.post_search_items(db, post_result.all()),
            page=page,
            limit=limit,
            total_posts=total_posts,
        )

    async def recent_threads(
        self,
        db: AsyncSession,
        limit: int = 5,
        author_id: Optional[UUID] = None,
        viewer: Optional[User] = None,
        all_categories: bool = False,
    ) -> List[ThreadItem]:
        query = select(ForumThread)
        if author_id is not None:
            query = query.where(ForumThread.author_id == author_id)
        if not all_categories:
            query = query.where(ForumThread.category_id.in_(await self._visible_category_ids(db, viewer)))
        result = await db.execute(query.order_by(ForumThread.created_at.desc()).limit(limit))
        return await self.thread_items(db, result.scalars().all())

    async def recent_posts(
        self,
        db: AsyncSession,
        limit: int = 10,
        author_id: Optional[UUID] = None,
        viewer: Optional[User] = None,
        all_categories: bool = False,
    ) -> List[PostSearchItem]:
        query = select(ForumPost, ForumThread.title).join(
            ForumThread, ForumThread.id == ForumPost.thread_id
        )
        if author_id is not None:
            query = query.where(ForumPost.author_id == author_id)
        if not all_categories:
            query = query.where(ForumThread.category_id.in_(await self._visible_category_ids(db, viewer)))
        result = await db.execute(query.order_by(ForumPost.created_at.desc()).limit(limit))
        return await self.post_search_items(db, result.all())

    async def likes_received(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(PostLike)
            .join(ForumPost, ForumPost.id == PostLike.post_id)
            .where(ForumPost.author_id == user_id)
        )
        return result.scalar() or 0


forum_service = ForumService()
