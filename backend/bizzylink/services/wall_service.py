"""
BizzyLink Backend: Profile Wall Service
=========================================

What:  Posts on a user's profile wall, with likes, comments, reposts and
       view counting.
Who:   /api/wall routes.

Visibility:
    A wall is readable, and its posts can be liked, commented on or
    reposted, by whoever may see the owner's profile (see
    UserService.can_view_profile).

Who may delete:
    post     → its author, the wall owner or a site admin
    comment  → its author, the post's author, the wall owner or a site admin
    bulk     → the wall owner or a site admin, only posts on that wall

Reposts:
    A repost is a new post on the reposter's own wall pointing at the
    original, which gains one `repost_count`. Nobody reposts the same post
    twice or their own post from their own wall. Deleting a repost gives the
    count back; deleting an original leaves its reposts pointing at nothing.

Views:
    A signed-in viewer counts once per hour per post; anonymous visitors are
    told apart by IP.
"""

import logging
import re
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bizzylink.database import apply_deltas, as_utc, utcnow
from bizzylink.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from bizzylink.models.user import User
from bizzylink.models.wall import WallComment, WallPost, WallPostLike, WallPostView
from bizzylink.schemas.forum import LikeResponse
from bizzylink.schemas.wall import (
    BulkDeleteResponse,
    CommentCreate,
    CommentListResponse,
    OriginalPost,
    RepostStatusResponse,
    SystemPostCreate,
    ViewResponse,
    WallCommentResponse,
    WallPostCreate,
    WallPostListResponse,
    WallPostResponse,
)
from bizzylink.services.forum_service import total_pages
from bizzylink.services.notification_service import notification_service
from bizzylink.services.user_service import user_service

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@([A-Za-z0-9_]{3,20})")
MAX_MENTIONS = 10
VIEW_WINDOW = timedelta(hours=1)

_Author = Tuple[Optional[str], Optional[str]]


class WallService:

    # ── Lookups and Checks ────────────────────────────────────────────────

    async def get_post_row(self, db: AsyncSession, post_id: UUID) -> WallPost:
        result = await db.execute(select(WallPost).where(WallPost.id == post_id))
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError(resource="wall post", resource_id=str(post_id))
        return post

    async def _check_visible(self, db: AsyncSession, viewer: Optional[User], owner: User) -> None:
        if not await user_service.can_view_profile(db, viewer, owner):
            raise PermissionDeniedError("This wall is not visible to you")

    async def _visible_post(self, db: AsyncSession, viewer: Optional[User], post_id: UUID) -> WallPost:
        post = await self.get_post_row(db, post_id)
        owner = await user_service.get_user(db, post.recipient_id)
        await self._check_visible(db, viewer, owner)
        return post

    # ── Response Building ─────────────────────────────────────────────────

    async def _authors(self, db: AsyncSession, ids: Iterable[UUID]) -> Dict[UUID, _Author]:
        ids = set(ids)
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.username, User.avatar).where(User.id.in_(ids)))
        return {row[0]: (row[1], row[2]) for row in result.all()}

    def _comment_response(self, comment: WallComment, authors: Dict[UUID, _Author]) -> WallCommentResponse:
        username, avatar = authors.get(comment.author_id, (None, None))
        return WallCommentResponse(
            id=comment.id,
            post_id=comment.post_id,
            author_id=comment.author_id,
            author_username=username,
            author_avatar=avatar,
            content=comment.content,
            created_at=comment.created_at,
        )

    async def _comments(self, db: AsyncSession, post_id: UUID) -> List[WallCommentResponse]:
        result = await db.execute(
            select(WallComment).where(WallComment.post_id == post_id).order_by(WallComment.created_at)
        )
        comments = result.scalars().all()
        authors = await self._authors(db, (c.author_id for c in comments))
        return [self._comment_response(c, authors) for c in comments]

    async def _post_responses(
        self, db: AsyncSession, posts: Sequence[WallPost], viewer: Optional[User]
    ) -> List[WallPostResponse]:
        """
        Build responses for a page of posts with a fixed number of queries:
        originals, comments, likes by the viewer and every author name.
        """
        post_ids = [p.id for p in posts]
        original_ids = {p.original_post_id for p in posts if p.original_post_id is not None}

        originals: Dict[UUID, WallPost] = {}
        if original_ids:
            result = await db.execute(select(WallPost).where(WallPost.id.in_(original_ids)))
            originals = {p.id: p for p in result.scalars().all()}

        comments_by_post: Dict[UUID, List[WallComment]] = {pid: [] for pid in post_ids}
        liked: set = set()
        if post_ids:
            result = await db.execute(
                select(WallComment)
                .where(WallComment.post_id.in_(post_ids))
                .order_by(WallComment.created_at)
            )
            for comment in result.scalars().all():
                comments_by_post[comment.post_id].append(comment)
            if viewer is not None:
                result = await db.execute(
                    select(WallPostLike.post_id).where(
                        WallPostLike.post_id.in_(post_ids), WallPostLike.user_id == viewer.id
                    )
                )
                liked = set(result.scalars().all())

        author_ids = {p.author_id for p in posts}
        author_ids.update(o.author_id for o in originals.values())
        author_ids.update(c.author_id for cs in comments_by_post.values() for c in cs)
        authors = await self._authors(db, author_ids)

        responses = []
        for post in posts:
            username, avatar = authors.get(post.author_id, (None, None))
            original = originals.get(post.original_post_id) if post.original_post_id else None
            responses.append(
                WallPostResponse(
                    id=post.id,
                    author_id=post.author_id,
                    author_username=username,
                    author_avatar=avatar,
                    recipient_id=post.recipient_id,
                    content=post.content,
                    image=post.image,
                    type=post.type,
                    data=post.data,
                    is_repost=post.is_repost,
                    repost_message=post.repost_message,
                    original_post=OriginalPost(
                        id=original.id,
                        author_id=original.author_id,
                        author_username=authors.get(original.author_id, (None, None))[0],
                        recipient_id=original.recipient_id,
                        content=original.content,
                        image=original.image,
                        created_at=original.created_at,
                    ) if original is not None else None,
                    like_count=post.like_count,
                    liked_by_me=post.id in liked,
                    comment_count=post.comment_count,
                    repost_count=post.repost_count,
                    view_count=post.view_count,
                    comments=[self._comment_response(c, authors) for c in comments_by_post[post.id]],
                    created_at=post.created_at,
                )
            )
        return responses

    # ── Posts ─────────────────────────────────────────────────────────────

    async def list_posts(
        self,
        db: AsyncSession,
        viewer: Optional[User],
        username: str,
        page: int = 1,
        limit: int = 10,
    ) -> WallPostListResponse:
        owner = await user_service.get_by_username(db, username)
        await self._check_visible(db, viewer, owner)

        count_result = await db.execute(
            select(func.count()).select_from(WallPost).where(WallPost.recipient_id == owner.id)
        )
        total = count_result.scalar() or 0

        result = await db.execute(
            select(WallPost)
            .where(WallPost.recipient_id == owner.id)
            .order_by(WallPost.created_at.desc(), WallPost.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        posts = result.scalars().all()
        return WallPostListResponse(
            posts=await self._post_responses(db, posts, viewer),
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
        )

    async def create_post(
        self, db: AsyncSession, author: User, username: str, data: WallPostCreate
    ) -> WallPostResponse:
        owner = await user_service.get_by_username(db, username)
        await self._check_visible(db, author, owner)

        post = WallPost(
            author_id=author.id,
            recipient_id=owner.id,
            content=data.content,
            image=data.image or None,
            type="user",
        )
        db.add(post)
        await db.flush()

        if owner.id != author.id:
            await notification_service.notify(
                db,
                owner,
                type="wall_post",
                message=f"{author.username} posted on your wall",
                sender_id=author.id,
                data={"post_id": str(post.id)},
                setting="wall_activity",
            )
            await db.flush()

        logger.info("User %s posted on the wall of %s", author.id, owner.id)
        return (await self._post_responses(db, [post], author))[0]

    async def create_system_post(
        self, db: AsyncSession, admin: User, username: str, data: SystemPostCreate
    ) -> WallPostResponse:
        """Achievement, friend and game events, written under the admin's name."""
        owner = await user_service.get_by_username(db, username)
        post = WallPost(
            author_id=admin.id,
            recipient_id=owner.id,
            content=data.content.strip(),
            type=data.type,
            data=data.data,
        )
        db.add(post)
        await db.flush()
        logger.info("Admin %s wrote a %s post on the wall of %s", admin.id, data.type, owner.id)
        return (await self._post_responses(db, [post], admin))[0]

    async def _remove_post(self, db: AsyncSession, post: WallPost) -> None:
        if post.is_repost and post.original_post_id is not None:
            original = await db.get(WallPost, post.original_post_id)
            if original is not None:
                await apply_deltas(db, original, {"repost_count": -1})

        await db.execute(delete(WallPostLike).where(WallPostLike.post_id == post.id))
        await db.execute(delete(WallComment).where(WallComment.post_id == post.id))
        await db.execute(delete(WallPostView).where(WallPostView.post_id == post.id))
        await db.execute(
            update(WallPost)
            .where(WallPost.original_post_id == post.id)
            .values(original_post_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await db.delete(post)
        await db.flush()

    async def delete_post(self, db: AsyncSession, user: User, post_id: UUID) -> None:
        post = await self.get_post_row(db, post_id)
        if user.id not in (post.author_id, post.recipient_id) and not user.is_admin:
            raise PermissionDeniedError("Only the author or the wall owner can delete this post")
        await self._remove_post(db, post)
        logger.info("User %s deleted wall post %s", user.id, post_id)

    async def bulk_delete(
        self, db: AsyncSession, user: User, username: str, post_ids: Sequence[UUID]
    ) -> BulkDeleteResponse:
        owner = await user_service.get_by_username(db, username)
        if user.id != owner.id and not user.is_admin:
            raise PermissionDeniedError("Only the wall owner can clear this wall")

        deleted: List[UUID] = []
        failed: List[UUID] = []
        for post_id in dict.fromkeys(post_ids):
            post = await db.get(WallPost, post_id)
            if post is None or post.recipient_id != owner.id:
                failed.append(post_id)
                continue
            await self._remove_post(db, post)
            deleted.append(post_id)

        logger.info("User %s bulk-deleted %d posts from the wall of %s", user.id, len(deleted), owner.id)
        return BulkDeleteResponse(deleted=deleted, failed=failed)

    # ── Likes ─────────────────────────────────────────────────────────────

    async def _existing_like(self, db: AsyncSession, post: WallPost, user: User) -> Optional[WallPostLike]:
        result = await db.execute(
            select(WallPostLike).where(WallPostLike.post_id == post.id, WallPostLike.user_id == user.id)
        )
        return result.scalar_one_or_none()

    async def like(self, db: AsyncSession, user: User, post_id: UUID) -> LikeResponse:
        """Liking twice is a no-op."""
        post = await self._visible_post(db, user, post_id)
        if await self._existing_like(db, post, user) is not None:
            return LikeResponse(liked=True, like_count=post.like_count)

        db.add(WallPostLike(post_id=post.id, user_id=user.id))
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError("You already liked this post") from e
        await apply_deltas(db, post, {"like_count": 1})

        if post.author_id != user.id:
            author = await db.get(User, post.author_id)
            if author is not None:
                await notification_service.notify(
                    db,
                    author,
                    type="wall_like",
                    message=f"{user.username} liked your wall post",
                    sender_id=user.id,
                    data={"post_id": str(post.id)},
                    setting="wall_activity",
                )
                await db.flush()
        return LikeResponse(liked=True, like_count=post.like_count)

    async def unlike(self, db: AsyncSession, user: User, post_id: UUID) -> LikeResponse:
        post = await self.get_post_row(db, post_id)
        existing = await self._existing_like(db, post, user)
        if existing is not None:
            await db.delete(existing)
            await db.flush()
            await apply_deltas(db, post, {"like_count": -1})
        return LikeResponse(liked=False, like_count=post.like_count)

    # ── Comments ──────────────────────────────────────────────────────────

    async def add_comment(
        self, db: AsyncSession, user: User, post_id: UUID, data: CommentCreate
    ) -> CommentListResponse:
        post = await self._visible_post(db, user, post_id)

        db.add(WallComment(post_id=post.id, author_id=user.id, content=data.content))
        await db.flush()
        await apply_deltas(db, post, {"comment_count": 1})

        notified = {user.id}
        if post.author_id not in notified:
            author = await db.get(User, post.author_id)
            if author is not None:
                await notification_service.notify(
                    db,
                    author,
                    type="wall_comment",
                    message=f"{user.username} commented on your wall post",
                    sender_id=user.id,
                    data={"post_id": str(post.id)},
                    setting="wall_activity",
                )
                notified.add(author.id)

        mentions = list(dict.fromkeys(m.lower() for m in MENTION_PATTERN.findall(data.content)))
        for name in mentions[:MAX_MENTIONS]:
            mentioned = await user_service.find_by_username(db, name)
            if mentioned is None or mentioned.id in notified:
                continue
            await notification_service.notify(
                db,
                mentioned,
                type="wall_mention",
                message=f"{user.username} mentioned you in a wall comment",
                sender_id=user.id,
                data={"post_id": str(post.id)},
                setting="wall_activity",
            )
            notified.add(mentioned.id)
        await db.flush()

        return CommentListResponse(comments=await self._comments(db, post.id))

    async def delete_comment(
        self, db: AsyncSession, user: User, post_id: UUID, comment_id: UUID
    ) -> CommentListResponse:
        post = await self.get_post_row(db, post_id)
        result = await db.execute(
            select(WallComment).where(WallComment.id == comment_id, WallComment.post_id == post.id)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError(resource="comment", resource_id=str(comment_id))

        allowed = (comment.author_id, post.author_id, post.recipient_id)
        if user.id not in allowed and not user.is_admin:
            raise PermissionDeniedError("You cannot delete this comment")

        await db.delete(comment)
        await db.flush()
        await apply_deltas(db, post, {"comment_count": -1})
        return CommentListResponse(comments=await self._comments(db, post.id))

    # ── Reposts ───────────────────────────────────────────────────────────

    async def _own_repost(self, db: AsyncSession, user: User, post_id: UUID) -> Optional[WallPost]:
        result = await db.execute(
            select(WallPost).where(
                WallPost.author_id == user.id,
                WallPost.original_post_id == post_id,
                WallPost.is_repost.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def repost(
        self, db: AsyncSession, user: User, post_id: UUID, message: Optional[str] = None
    ) -> WallPostResponse:
        original = await self._visible_post(db, user, post_id)
        if original.author_id == user.id and original.recipient_id == user.id:
            raise ValidationError("You cannot repost your own post to your own wall")
        if await self._own_repost(db, user, original.id) is not None:
            raise ConflictError("You already reposted this post")

        message = (message or "").strip() or None
        repost = WallPost(
            author_id=user.id,
            recipient_id=user.id,
            content=message or "",
            original_post_id=original.id,
            is_repost=True,
            repost_message=message,
            type="user",
        )
        db.add(repost)
        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError("You already reposted this post") from e
        await apply_deltas(db, original, {"repost_count": 1})

        if original.author_id != user.id:
            author = await db.get(User, original.author_id)
            if author is not None:
                await notification_service.notify(
                    db,
                    author,
                    type="wall_repost",
                    message=f"{user.username} reposted your wall post",
                    sender_id=user.id,
                    data={"post_id": str(original.id), "repost_id": str(repost.id)},
                    setting="wall_activity",
                )
                await db.flush()

        logger.info("User %s reposted wall post %s", user.id, original.id)
        return (await self._post_responses(db, [repost], user))[0]

    async def unrepost(self, db: AsyncSession, user: User, post_id: UUID) -> None:
        repost = await self._own_repost(db, user, post_id)
        if repost is None:
            raise NotFoundError(resource="repost", resource_id=str(post_id))
        await self._remove_post(db, repost)

    async def repost_status(self, db: AsyncSession, user: User, post_id: UUID) -> RepostStatusResponse:
        post = await self.get_post_row(db, post_id)
        repost = await self._own_repost(db, user, post.id)
        return RepostStatusResponse(has_reposted=repost is not None, repost_count=post.repost_count)

    # ── Views ─────────────────────────────────────────────────────────────

    async def record_view(
        self, db: AsyncSession, post_id: UUID, viewer: Optional[User], ip: Optional[str]
    ) -> ViewResponse:
        post = await self.get_post_row(db, post_id)
        if viewer is not None:
            match = WallPostView.user_id == viewer.id
        elif ip:
            match = WallPostView.ip == ip
        else:
            return ViewResponse(view_count=post.view_count)

        result = await db.execute(
            select(WallPostView.viewed_at)
            .where(WallPostView.post_id == post.id, match)
            .order_by(WallPostView.viewed_at.desc())
            .limit(1)
        )
        last_view = result.scalar_one_or_none()
        now = utcnow()
        if last_view is not None and as_utc(last_view) > now - VIEW_WINDOW:
            return ViewResponse(view_count=post.view_count)

        db.add(
            WallPostView(
                post_id=post.id,
                user_id=viewer.id if viewer is not None else None,
                ip=ip,
                viewed_at=now,
            )
        )
        await db.flush()
        await apply_deltas(db, post, {"view_count": 1})
        return ViewResponse(view_count=post.view_count)

    # ── Account Removal ───────────────────────────────────────────────────

    async def release_user(self, db: AsyncSession, user: User) -> None:
        """
        Clear a departing account off every wall.

        Its likes and comments are taken off the posts' counters, and posts it
        wrote or received go through the normal delete path so reposts of
        them are given back too.
        """
        likes = await db.execute(select(WallPostLike.post_id).where(WallPostLike.user_id == user.id))
        for post_id in likes.scalars().all():
            post = await db.get(WallPost, post_id)
            if post is not None:
                await apply_deltas(db, post, {"like_count": -1})

        comments = await db.execute(
            select(WallComment.post_id, func.count())
            .where(WallComment.author_id == user.id)
            .group_by(WallComment.post_id)
        )
        for post_id, count in comments.all():
            post = await db.get(WallPost, post_id)
            if post is not None:
                await apply_deltas(db, post, {"comment_count": -count})

        await db.execute(delete(WallPostLike).where(WallPostLike.user_id == user.id))
        await db.execute(delete(WallComment).where(WallComment.author_id == user.id))
        await db.execute(delete(WallPostView).where(WallPostView.user_id == user.id))

        posts = await db.execute(
            select(WallPost)
            .where(or_(WallPost.author_id == user.id, WallPost.recipient_id == user.id))
            .order_by(WallPost.is_repost.desc())
        )
        for post in posts.scalars().all():
            await self._remove_post(db, post)


wall_service = WallService()
