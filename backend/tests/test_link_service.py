"""
BizzyLink Backend: Minecraft Linking Tests
============================================

What we test:
    ✅ Code generation: alphabet, replacement of older codes, expiry bounds
    ✅ Validation links the account once and consumes the code
    ✅ Expired, unknown and wrong-player codes answer success=False
    ✅ A Minecraft UUID can only belong to one account
    ✅ pending / lookup / seen for the plugin, and unlinking
    ✅ Link and unlink are committed before the webhook goes out
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import func, select

from bizzylink.config import settings
from bizzylink.database import utcnow
from bizzylink.exceptions import ConflictError, DatabaseError, ValidationError
from bizzylink.models.link_code import LinkCode
from bizzylink.schemas.minecraft import LinkCodeRequest, ServerLinkRequest, ServerPlayerRequest
from bizzylink.services.link_service import (
    CODE_ALPHABET,
    clean_minecraft_uuid,
    generate_code,
    link_service,
    normalize_uuid,
)
from bizzylink.services.notification_service import notification_service

PLAYER_UUID = "069a79f4-44e9-4726-a5be-fca90e38aaf5"
OTHER_UUID = "853c80ef-3c37-49fd-aa49-938b674adae6"


@pytest.fixture
def notifier():
    """Replaces the outbound webhook so no HTTP is attempted."""
    with patch("bizzylink.services.link_service.link_notifier") as mock_notifier:
        mock_notifier.notify_linked = AsyncMock(return_value=True)
        mock_notifier.notify_unlinked = AsyncMock(return_value=True)
        yield mock_notifier


async def _code_count(db, user):
    result = await db.execute(
        select(func.count()).select_from(LinkCode).where(LinkCode.user_id == user.id)
    )
    return result.scalar()


async def _link(db, user, username="Notch", minecraft_uuid=PLAYER_UUID):
    generated = await link_service.generate(db, user, LinkCodeRequest())
    return await link_service.validate(
        db, ServerLinkRequest(username=username, uuid=minecraft_uuid, code=generated.code)
    )


def _record_commits(db, monkeypatch):
    """Log each commit on `db` into the returned list."""
    events = []
    real_commit = db.commit

    async def commit():
        events.append("commit")
        await real_commit()

    monkeypatch.setattr(db, "commit", commit)
    return events


class TestHelpers:

    def test_generate_code_uses_unambiguous_alphabet(self):
        code = generate_code(6)
        assert len(code) == 6
        assert all(ch in CODE_ALPHABET for ch in code)
        assert not set("01OI") & set(CODE_ALPHABET)

    def test_uuid_normalization(self):
        assert normalize_uuid("069A79F444E94726A5BEFCA90E38AAF5") == PLAYER_UUID
        assert clean_minecraft_uuid(PLAYER_UUID.upper()) == PLAYER_UUID

    def test_bad_uuid_rejected(self):
        with pytest.raises(ValidationError):
            clean_minecraft_uuid("not-a-uuid")


class TestGenerate:

    @pytest.mark.asyncio
    async def test_generate_replaces_previous_code(self, db_session, make_user):
        user = await make_user("Alex")

        await link_service.generate(db_session, user, LinkCodeRequest())
        second = await link_service.generate(db_session, user, LinkCodeRequest())

        assert len(second.code) == settings.link_code_length
        assert second.expiry_minutes == settings.link_code_expiry_minutes
        assert await _code_count(db_session, user) == 1

        status = await link_service.status(db_session, user)
        assert status.linked is False
        assert status.code == second.code

    @pytest.mark.asyncio
    async def test_gives_up_when_every_candidate_is_taken(self, db_session, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")

        with patch("bizzylink.services.link_service.generate_code", return_value="ABCDEF"):
            await link_service.generate(db_session, alex, LinkCodeRequest())
            with pytest.raises(DatabaseError):
                await link_service.generate(db_session, sam, LinkCodeRequest())

        assert await _code_count(db_session, sam) == 0

    @pytest.mark.asyncio
    async def test_expiry_above_maximum(self, db_session, make_user):
        user = await make_user("Alex")
        with pytest.raises(ValidationError):
            await link_service.generate(
                db_session,
                user,
                LinkCodeRequest(expiry_minutes=settings.link_code_max_expiry_minutes + 1),
            )

    @pytest.mark.asyncio
    async def test_already_linked(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)
        with pytest.raises(ValidationError):
            await link_service.generate(db_session, user, LinkCodeRequest())

    @pytest.mark.asyncio
    async def test_minecraft_name_linked_elsewhere(self, db_session, make_user, notifier):
        owner = await make_user("Owner")
        await _link(db_session, owner, username="Notch")
        user = await make_user("Alex")

        with pytest.raises(ConflictError):
            await link_service.generate(db_session, user, LinkCodeRequest(minecraft_username="notch"))


class TestValidate:

    @pytest.mark.asyncio
    async def test_successful_link(self, db_session, make_user, notifier):
        user = await make_user("Alex")

        result = await _link(db_session, user, minecraft_uuid=PLAYER_UUID.replace("-", "").upper())

        assert result.success is True
        assert result.user.username == "Alex"
        assert user.minecraft_uuid == PLAYER_UUID
        assert user.minecraft_username == "Notch"
        assert user.linked_at is not None
        assert await _code_count(db_session, user) == 0

        notifier.notify_linked.assert_awaited_once()
        payload = notifier.notify_linked.await_args.args[0]
        assert payload["event"] == "minecraft_linked"
        assert payload["minecraft_uuid"] == PLAYER_UUID

        inbox = await notification_service.list_for_user(db_session, user.id)
        assert inbox.notifications[0].type == "minecraft_linked"

    @pytest.mark.asyncio
    async def test_link_is_committed_before_webhook(self, db_session, make_user, notifier, monkeypatch):
        user = await make_user("Alex")
        generated = await link_service.generate(db_session, user, LinkCodeRequest())
        events = _record_commits(db_session, monkeypatch)
        notifier.notify_linked.side_effect = lambda payload: events.append("webhook")
        tasks = BackgroundTasks()

        await link_service.validate(
            db_session,
            ServerLinkRequest(username="Notch", uuid=PLAYER_UUID, code=generated.code),
            background_tasks=tasks,
        )
        assert events == ["commit"]

        await tasks()
        assert events == ["commit", "webhook"]

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        generated = await link_service.generate(db_session, user, LinkCodeRequest())

        result = await link_service.validate(
            db_session,
            ServerLinkRequest(username="Notch", uuid=PLAYER_UUID, code=f" {generated.code.lower()} "),
        )
        assert result.success is True

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session, notifier):
        result = await link_service.validate(
            db_session, ServerLinkRequest(username="Notch", uuid=PLAYER_UUID, code="ZZZZZZ")
        )
        assert result.success is False
        notifier.notify_linked.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_code(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        db_session.add(
            LinkCode(code="ABC234", user_id=user.id, expires_at=utcnow() - timedelta(minutes=1))
        )
        await db_session.flush()

        result = await link_service.validate(
            db_session, ServerLinkRequest(username="Notch", uuid=PLAYER_UUID, code="ABC234")
        )
        assert result.success is False
        assert user.minecraft_uuid is None

    @pytest.mark.asyncio
    async def test_code_bound_to_other_player(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        generated = await link_service.generate(
            db_session, user, LinkCodeRequest(minecraft_username="Notch")
        )

        result = await link_service.validate(
            db_session, ServerLinkRequest(username="Jeb_", uuid=PLAYER_UUID, code=generated.code)
        )
        assert result.success is False
        assert user.minecraft_uuid is None

    @pytest.mark.asyncio
    async def test_uuid_owned_by_another_user(self, db_session, make_user, notifier):
        owner = await make_user("Owner")
        await _link(db_session, owner, username="Notch")
        user = await make_user("Alex")

        with pytest.raises(ConflictError):
            await _link(db_session, user, username="Notch2")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "request_data",
        [
            {"username": "Notch", "uuid": PLAYER_UUID, "code": ""},
            {"username": "x", "uuid": PLAYER_UUID, "code": "ABC234"},
            {"username": "Notch", "uuid": "nope", "code": "ABC234"},
        ],
    )
    async def test_malformed_input(self, db_session, notifier, request_data):
        with pytest.raises(ValidationError):
            await link_service.validate(db_session, ServerLinkRequest(**request_data))


class TestPluginQueries:

    @pytest.mark.asyncio
    async def test_pending(self, db_session, make_user):
        user = await make_user("Alex")
        await link_service.generate(db_session, user, LinkCodeRequest(minecraft_username="Notch"))

        pending = await link_service.pending(db_session, ServerPlayerRequest(username="notch"))
        assert pending.pending is True
        assert pending.expires_at is not None

        other = await link_service.pending(db_session, ServerPlayerRequest(username="Jeb_"))
        assert other.pending is False

    @pytest.mark.asyncio
    async def test_lookup_by_uuid_then_name(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)

        by_uuid = await link_service.lookup(db_session, ServerPlayerRequest(uuid=PLAYER_UUID))
        assert by_uuid.success is True
        assert by_uuid.user.user_id == user.id

        by_name = await link_service.lookup(db_session, ServerPlayerRequest(username="NOTCH"))
        assert by_name.user.user_id == user.id

        missing = await link_service.lookup(db_session, ServerPlayerRequest(uuid=OTHER_UUID))
        assert missing.success is False

    @pytest.mark.asyncio
    async def test_lookup_requires_identifier(self, db_session):
        with pytest.raises(ValidationError):
            await link_service.lookup(db_session, ServerPlayerRequest())

    @pytest.mark.asyncio
    async def test_seen_updates_last_seen(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)
        before = user.last_seen

        result = await link_service.seen(db_session, ServerPlayerRequest(uuid=PLAYER_UUID))

        assert result.success is True
        assert user.last_seen >= before

    @pytest.mark.asyncio
    async def test_check_username(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)

        assert (await link_service.check_username(db_session, "notch")).linked is True
        assert (await link_service.check_username(db_session, "Jeb_")).linked is False


class TestUnlink:

    @pytest.mark.asyncio
    async def test_unlink_clears_fields(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)

        result = await link_service.unlink(db_session, user)

        assert result.already_unlinked is False
        assert user.minecraft_uuid is None
        assert user.minecraft_username is None
        assert user.linked_at is None
        payload = notifier.notify_unlinked.await_args.args[0]
        assert payload["event"] == "minecraft_unlinked"
        assert payload["minecraft_username"] == "Notch"

    @pytest.mark.asyncio
    async def test_unlink_is_committed_before_webhook(self, db_session, make_user, notifier, monkeypatch):
        user = await make_user("Alex")
        await _link(db_session, user)
        events = _record_commits(db_session, monkeypatch)
        notifier.notify_unlinked.side_effect = lambda payload: events.append("webhook")
        tasks = BackgroundTasks()

        await link_service.unlink(db_session, user, background_tasks=tasks)
        assert events == ["commit"]

        await tasks()
        assert events == ["commit", "webhook"]

    @pytest.mark.asyncio
    async def test_unlink_when_not_linked(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        result = await link_service.unlink(db_session, user)
        assert result.already_unlinked is True
        notifier.notify_unlinked.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relink_after_unlink(self, db_session, make_user, notifier):
        user = await make_user("Alex")
        await _link(db_session, user)
        await link_service.unlink(db_session, user)

        result = await _link(db_session, user, username="Jeb_", minecraft_uuid=OTHER_UUID)
        assert result.success is True
        assert user.minecraft_uuid == OTHER_UUID
