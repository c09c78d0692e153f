"""
BizzyLink Backend: Forum Service Tests
========================================

What we test:
    ✅ Slugs, category CRUD and visibility rules
    ✅ Thread creation writes the first post and bumps every counter
    ✅ Replies, locked threads, editing and deleting keep counters in step
    ✅ Counters move in the database, so a stale session cannot undo a bump
    ✅ Deleting the first post removes the whole thread
    ✅ Moving a thread moves its counts; likes toggle; search escapes LIKE
"""

import pytest

from bizzylink.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from bizzylink.models.user import User
from bizzylink.schemas.forum import CategoryCreate, CategoryUpdate, ThreadCreate, ThreadUpdate
from bizzylink.services.forum_service import (
    can_view_category,
    escape_like,
    forum_service,
    slugify,
    total_pages,
)


async def _category(db, name="General", **fields):
    response = await forum_service.create_category(db, CategoryCreate(name=name, **fields))
    return await forum_service.get_category(db, response.id)


async def _thread(db, author, category, title="Hello world", content="First post"):
    return await forum_service.create_thread(
        db, author, ThreadCreate(title=title, content=content, category_id=category.id)
    )


class TestHelpers:

    def test_slugify(self):
        assert slugify("  Server  News & Updates!! ") == "server-news-updates"
        assert slugify("---") == ""

    def test_escape_like(self):
        assert escape_like("100%_done\\") == "100\\%\\_done\\\\"

    def test_total_pages(self):
        assert total_pages(0, 10) == 0
        assert total_pages(10, 10) == 1
        assert total_pages(11, 10) == 2


class TestCategories:

    @pytest.mark.asyncio
    async def test_create_and_conflict(self, db_session):
        category = await _category(db_session, "Server News")
        assert category.slug == "server-news"

        with pytest.raises(ConflictError):
            await _category(db_session, "server news")

    @pytest.mark.asyncio
    async def test_name_without_letters_rejected(self, db_session):
        with pytest.raises(ValidationError):
            await _category(db_session, "!!!")

    @pytest.mark.asyncio
    async def test_update_renames_slug(self, db_session):
        category = await _category(db_session, "General")
        updated = await forum_service.update_category(
            db_session, category.id, CategoryUpdate(name="Off Topic", display_order=3)
        )
        assert updated.slug == "off-topic"
        assert updated.display_order == 3

    @pytest.mark.asyncio
    async def test_inactive_hidden_from_non_admins(self, db_session, make_user):
        admin = await make_user("Admin", forum_rank="admin")
        await _category(db_session, "Visible")
        await _category(db_session, "Hidden", is_active=False)

        public = await forum_service.list_categories(db_session, None)
        assert [c.name for c in public] == ["Visible"]

        everything = await forum_service.list_categories(db_session, admin)
        assert {c.name for c in everything} == {"Visible", "Hidden"}

    @pytest.mark.asyncio
    async def test_cannot_delete_category_with_threads(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)
        await _thread(db_session, author, category)

        with pytest.raises(ValidationError):
            await forum_service.delete_category(db_session, category.id)

    @pytest.mark.asyncio
    async def test_delete_empty_category(self, db_session):
        category = await _category(db_session)
        await forum_service.delete_category(db_session, category.id)
        with pytest.raises(NotFoundError):
            await forum_service.get_category(db_session, category.id)

    @pytest.mark.asyncio
    async def test_rank_gated_category(self, db_session, make_user):
        member = await make_user("Member")
        trusted = await make_user("Trusted", forum_rank="trusted")
        category = await _category(db_session, "Trusted Lounge", required_rank="trusted")

        assert not can_view_category(category, None)
        assert not can_view_category(category, member)
        assert can_view_category(category, trusted)

        with pytest.raises(AuthenticationError):
            await forum_service.list_category_threads(db_session, category.id, None)
        with pytest.raises(PermissionDeniedError):
            await forum_service.list_category_threads(db_session, category.id, member)
        listing = await forum_service.list_category_threads(db_session, category.id, trusted)
        assert listing.total == 0


class TestThreads:

    @pytest.mark.asyncio
    async def test_create_thread_updates_counters(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)

        thread = await _thread(db_session, author, category, title="My First Thread")

        assert thread.slug == "my-first-thread"
        assert thread.reply_count == 0
        assert thread.author_username == "Alex"
        assert category.thread_count == 1
        assert category.post_count == 1
        assert author.thread_count == 1
        assert author.post_count == 1

        detail = await forum_service.get_thread(db_session, thread.id, None)
        assert detail.total_posts == 1
        assert detail.posts[0].is_first_post is True
        assert detail.thread.views == 1

    @pytest.mark.asyncio
    async def test_pinned_threads_listed_first(self, db_session, make_user):
        admin = await make_user("Admin", forum_rank="admin")
        category = await _category(db_session)
        first = await _thread(db_session, admin, category, title="Old announcement")
        await _thread(db_session, admin, category, title="Newer chatter")
        await forum_service.update_thread(db_session, first.id, admin, ThreadUpdate(is_pinned=True))

        listing = await forum_service.list_category_threads(db_session, category.id, None)
        assert listing.threads[0].id == first.id
        assert listing.total == 2
        assert listing.total_pages == 1

    @pytest.mark.asyncio
    async def test_author_may_rename_but_not_pin(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)

        renamed = await forum_service.update_thread(
            db_session, thread.id, author, ThreadUpdate(title="Better title")
        )
        assert renamed.slug == "better-title"

        with pytest.raises(PermissionDeniedError):
            await forum_service.update_thread(
                db_session, thread.id, author, ThreadUpdate(is_locked=True)
            )

    @pytest.mark.asyncio
    async def test_stranger_cannot_edit_thread(self, db_session, make_user):
        author = await make_user("Alex")
        stranger = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)

        with pytest.raises(PermissionDeniedError):
            await forum_service.update_thread(
                db_session, thread.id, stranger, ThreadUpdate(title="Hijacked")
            )

    @pytest.mark.asyncio
    async def test_move_thread_moves_counts(self, db_session, make_user):
        admin = await make_user("Admin", forum_rank="admin")
        source = await _category(db_session, "Source")
        target = await _category(db_session, "Target")
        thread = await _thread(db_session, admin, source)
        await forum_service.create_post(db_session, thread.id, admin, "reply")

        await forum_service.update_thread(
            db_session, thread.id, admin, ThreadUpdate(category_id=target.id)
        )

        assert (source.thread_count, source.post_count) == (0, 0)
        assert (target.thread_count, target.post_count) == (1, 2)

    @pytest.mark.asyncio
    async def test_delete_thread_resets_counters(self, db_session, make_user):
        author = await make_user("Alex")
        replier = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        await forum_service.create_post(db_session, thread.id, replier, "reply one")
        await forum_service.create_post(db_session, thread.id, replier, "reply two")

        await forum_service.delete_thread(db_session, thread.id, author)

        assert (category.thread_count, category.post_count) == (0, 0)
        assert (author.thread_count, author.post_count) == (0, 0)
        assert replier.post_count == 0
        with pytest.raises(NotFoundError):
            await forum_service.get_thread_row(db_session, thread.id)


class TestPosts:

    @pytest.mark.asyncio
    async def test_reply_updates_thread(self, db_session, make_user):
        author = await make_user("Alex")
        replier = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)

        post = await forum_service.create_post(db_session, thread.id, replier, "Nice!")

        assert post.author_username == "Sam"
        row = await forum_service.get_thread_row(db_session, thread.id)
        assert row.reply_count == 1
        assert row.last_post_author_id == replier.id
        assert category.post_count == 2

    @pytest.mark.asyncio
    async def test_reply_from_a_stale_session_still_counts(self, db_session, session_factory, make_user):
        author = await make_user("Alex")
        replier = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        await db_session.commit()

        async with session_factory() as other:
            # Loaded before the first reply lands
            stale_thread = await forum_service.get_thread_row(other, thread.id)
            other_replier = await other.get(User, replier.id)

            await forum_service.create_post(db_session, thread.id, replier, "first")
            await db_session.commit()

            await forum_service.create_post(other, thread.id, other_replier, "second")
            await other.commit()
            assert stale_thread.reply_count == 2

        row = await forum_service.get_thread_row(db_session, thread.id)
        await db_session.refresh(row)
        await db_session.refresh(replier)
        await db_session.refresh(category)
        assert row.reply_count == 2
        assert replier.post_count == 2
        assert category.post_count == 3

    @pytest.mark.asyncio
    async def test_locked_thread_only_for_moderators(self, db_session, make_user):
        admin = await make_user("Admin", forum_rank="admin")
        member = await make_user("Sam")
        moderator = await make_user("Mod", forum_rank="moderator")
        category = await _category(db_session)
        thread = await _thread(db_session, admin, category)
        await forum_service.update_thread(db_session, thread.id, admin, ThreadUpdate(is_locked=True))

        with pytest.raises(PermissionDeniedError):
            await forum_service.create_post(db_session, thread.id, member, "let me in")
        post = await forum_service.create_post(db_session, thread.id, moderator, "mod note")
        assert post.content == "mod note"

    @pytest.mark.asyncio
    async def test_edit_records_editor(self, db_session, make_user):
        author = await make_user("Alex")
        moderator = await make_user("Mod", forum_rank="moderator")
        stranger = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        post = await forum_service.create_post(db_session, thread.id, author, "typo")

        with pytest.raises(PermissionDeniedError):
            await forum_service.update_post(db_session, post.id, stranger, "vandalism")

        edited = await forum_service.update_post(db_session, post.id, moderator, "fixed")
        assert edited.content == "fixed"
        assert edited.edited_by_id == moderator.id
        assert edited.edited_at is not None

    @pytest.mark.asyncio
    async def test_delete_reply_decrements(self, db_session, make_user):
        author = await make_user("Alex")
        replier = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        reply = await forum_service.create_post(db_session, thread.id, replier, "reply")

        removed_thread = await forum_service.delete_post(db_session, reply.id, replier)

        assert removed_thread is False
        row = await forum_service.get_thread_row(db_session, thread.id)
        assert row.reply_count == 0
        assert row.last_post_author_id == author.id
        assert category.post_count == 1
        assert replier.post_count == 0

    @pytest.mark.asyncio
    async def test_deleting_first_post_deletes_thread(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        detail = await forum_service.get_thread(db_session, thread.id, author)

        removed_thread = await forum_service.delete_post(db_session, detail.posts[0].id, author)

        assert removed_thread is True
        assert category.thread_count == 0
        with pytest.raises(NotFoundError):
            await forum_service.get_thread_row(db_session, thread.id)

    @pytest.mark.asyncio
    async def test_toggle_like(self, db_session, make_user):
        author = await make_user("Alex")
        fan = await make_user("Sam")
        category = await _category(db_session)
        thread = await _thread(db_session, author, category)
        detail = await forum_service.get_thread(db_session, thread.id, fan)
        post_id = detail.posts[0].id

        liked = await forum_service.toggle_like(db_session, post_id, fan)
        assert (liked.liked, liked.like_count) == (True, 1)
        assert await forum_service.likes_received(db_session, author.id) == 1

        detail = await forum_service.get_thread(db_session, thread.id, fan)
        assert detail.posts[0].liked_by_me is True

        unliked = await forum_service.toggle_like(db_session, post_id, fan)
        assert (unliked.liked, unliked.like_count) == (False, 0)


class TestSearch:

    @pytest.mark.asyncio
    async def test_search_titles_and_posts(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)
        await _thread(db_session, author, category, title="Diamond prices", content="Selling diamonds")
        await _thread(db_session, author, category, title="Redstone help", content="How do pistons work")

        results = await forum_service.search(db_session, "diamond", None)

        assert [t.title for t in results.threads] == ["Diamond prices"]
        assert results.total_posts == 1
        assert results.posts[0].thread_title == "Diamond prices"

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, db_session, make_user):
        author = await make_user("Alex")
        category = await _category(db_session)
        await _thread(db_session, author, category, title="Plain title", content="nothing special")

        results = await forum_service.search(db_session, "%%", None)
        assert results.threads == []
        assert results.total_posts == 0

    @pytest.mark.asyncio
    async def test_query_too_short(self, db_session):
        with pytest.raises(ValidationError):
            await forum_service.search(db_session, " a ", None)

    @pytest.mark.asyncio
    async def test_hidden_categories_excluded(self, db_session, make_user):
        admin = await make_user("Admin", forum_rank="admin")
        staff = await _category(db_session, "Staff", required_rank="moderator")
        await _thread(db_session, admin, staff, title="Secret plans", content="secret")

        assert (await forum_service.search(db_session, "secret", None)).total_posts == 0
        assert (await forum_service.search(db_session, "secret", admin)).total_posts == 1
