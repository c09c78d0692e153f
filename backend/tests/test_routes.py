"""
BizzyLink Backend: HTTP Route Tests
=====================================

What we test:
    ✅ /health answers with the database status
    ✅ Register → login → profile, cookie and token pair
    ✅ Error envelope: error code, message and the request ID
    ✅ Plugin endpoints reject calls without X-Server-Key
    ✅ The full link flow over HTTP: generate in the browser, redeem in game
    ✅ Admin endpoints refuse ordinary members
    ✅ Account changes need a user manager, who cannot touch admins or grant
       more than they hold
    ✅ Profile wall: posting, likes, comments, reposts and bulk delete
"""

import pytest

from conftest import DEFAULT_PASSWORD, SERVER_KEY, auth_headers

PLAYER_UUID = "069a79f4-44e9-4726-a5be-fca90e38aaf5"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_register_login_profile(self, test_client):
        response = await test_client.post(
            "/api/auth/register",
            json={"username": "Steve", "password": DEFAULT_PASSWORD, "email": "steve@example.com"},
        )
        assert response.status_code == 201
        assert "token=" in response.headers["set-cookie"]
        assert response.json()["user"]["username"] == "Steve"

        response = await test_client.post(
            "/api/auth/login", json={"username": "steve", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["token"]

        response = await test_client.get(
            "/api/auth/profile", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["email"] == "steve@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_username_conflict(self, test_client, make_user):
        await make_user("Steve")
        response = await test_client.post(
            "/api/auth/register", json={"username": "STEVE", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_bad_login_uses_error_envelope(self, test_client, make_user):
        await make_user("Steve")
        response = await test_client.post(
            "/api/auth/login", json={"username": "Steve", "password": "wrong-password"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "authentication_error"
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_profile_requires_token(self, test_client):
        response = await test_client.get("/api/auth/profile")
        assert response.status_code == 401


class TestMinecraftRoutes:

    @pytest.mark.asyncio
    async def test_plugin_endpoints_need_server_key(self, test_client):
        payload = {"username": "Notch", "uuid": PLAYER_UUID, "code": "ABCDEF"}

        missing = await test_client.post("/api/minecraft/link", json=payload)
        wrong = await test_client.post(
            "/api/minecraft/link", json=payload, headers={"X-Server-Key": "nope"}
        )

        assert missing.status_code == 401
        assert wrong.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_code_is_not_an_error(self, test_client):
        response = await test_client.post(
            "/api/minecraft/link",
            json={"username": "Notch", "uuid": PLAYER_UUID, "code": "ABCDEF"},
            headers={"X-Server-Key": SERVER_KEY},
        )
        assert response.status_code == 200
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_link_flow(self, test_client, make_user):
        user = await make_user("Steve")
        headers = auth_headers(user)

        response = await test_client.post("/api/minecraft/generate-code", json={}, headers=headers)
        assert response.status_code == 201
        code = response.json()["code"]

        response = await test_client.post(
            "/api/minecraft/link",
            json={"username": "Notch", "uuid": PLAYER_UUID, "code": code},
            headers={"X-Server-Key": SERVER_KEY},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["username"] == "Steve"

        status = await test_client.get("/api/minecraft/status", headers=headers)
        assert status.json()["linked"] is True
        assert status.json()["minecraft_uuid"] == PLAYER_UUID

        check = await test_client.get("/api/minecraft/check/notch")
        assert check.json()["linked"] is True

        lookup = await test_client.post(
            "/api/minecraft/lookup",
            json={"uuid": PLAYER_UUID},
            headers={"X-Server-Key": SERVER_KEY},
        )
        assert lookup.json()["user"]["minecraft_username"] == "Notch"


class TestAdminRoutes:

    @pytest.mark.asyncio
    async def test_member_cannot_open_dashboard(self, test_client, make_user):
        user = await make_user("Steve")

        access = await test_client.get("/api/admin/check-access", headers=auth_headers(user))
        assert access.json()["has_access"] is False

        response = await test_client.get("/api/admin/dashboard", headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_admin_dashboard(self, test_client, make_user):
        admin = await make_user("Admin", role="admin")
        response = await test_client.get("/api/admin/dashboard", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["total_users"] == 1

    @pytest.mark.asyncio
    async def test_moderator_cannot_promote_themself(self, test_client, make_user, db_session):
        mod = await make_user("Mod", role="moderator")

        response = await test_client.put(
            f"/api/admin/users/{mod.id}", json={"role": "admin"}, headers=auth_headers(mod)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

        await db_session.refresh(mod)
        assert mod.role == "moderator"

    @pytest.mark.asyncio
    async def test_moderator_cannot_ban_an_admin(self, test_client, make_user, db_session):
        mod = await make_user("Mod", role="moderator", can_access_admin=True)
        admin = await make_user("Admin", role="admin")

        response = await test_client.put(
            f"/api/admin/users/{admin.id}/status",
            json={"status": "banned", "reason": "coup"},
            headers=auth_headers(mod),
        )
        assert response.status_code == 403

        await db_session.refresh(admin)
        assert admin.account_status == "active"

    @pytest.mark.asyncio
    async def test_user_manager_limited_to_own_rank(self, test_client, make_user):
        manager = await make_user(
            "Manager",
            role="moderator",
            can_access_admin=True,
            can_moderate_forums=True,
            can_manage_users=True,
        )
        admin = await make_user("Admin", role="admin")
        member = await make_user("Steve")
        headers = auth_headers(manager)

        ban_admin = await test_client.put(
            f"/api/admin/users/{admin.id}/status", json={"status": "banned"}, headers=headers
        )
        assert ban_admin.status_code == 403

        make_admin = await test_client.put(
            f"/api/admin/users/{member.id}", json={"role": "admin"}, headers=headers
        )
        assert make_admin.status_code == 403

        grant_server = await test_client.put(
            f"/api/admin/users/{member.id}/permissions",
            json={"can_edit_server": True},
            headers=headers,
        )
        assert grant_server.status_code == 403

        make_mod = await test_client.put(
            f"/api/admin/users/{member.id}", json={"role": "moderator"}, headers=headers
        )
        assert make_mod.status_code == 200
        assert make_mod.json()["role"] == "moderator"

        suspend = await test_client.put(
            f"/api/admin/users/{member.id}/status", json={"status": "suspended"}, headers=headers
        )
        assert suspend.status_code == 200

    @pytest.mark.asyncio
    async def test_site_admin_can_promote(self, test_client, make_user):
        admin = await make_user("Admin", role="admin")
        member = await make_user("Steve")

        response = await test_client.put(
            f"/api/admin/users/{member.id}", json={"role": "admin"}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "admin"
        assert body["permissions"]["can_manage_users"] is True


class TestForumRoutes:

    @pytest.mark.asyncio
    async def test_search_term_too_short(self, test_client):
        response = await test_client.get("/api/forum/search", params={"q": "a"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_categories_are_public(self, test_client):
        response = await test_client.get("/api/forum/categories")
        assert response.status_code == 200


class TestWallRoutes:

    @pytest.mark.asyncio
    async def test_post_like_comment_and_list(self, test_client, make_user):
        alex = await make_user("Alex")
        sam = await make_user("Sam")

        created = await test_client.post(
            "/api/wall/Sam", json={"content": "Nice base!"}, headers=auth_headers(alex)
        )
        assert created.status_code == 201
        post_id = created.json()["id"]

        liked = await test_client.post(f"/api/wall/post/{post_id}/like", headers=auth_headers(sam))
        assert liked.json() == {"liked": True, "like_count": 1}

        commented = await test_client.post(
            f"/api/wall/post/{post_id}/comment", json={"content": "thanks"}, headers=auth_headers(sam)
        )
        assert commented.status_code == 200
        assert commented.json()["comments"][0]["author_username"] == "Sam"

        listed = await test_client.get("/api/wall/Sam")
        assert listed.status_code == 200
        assert listed.headers["cache-control"] == "no-store"
        body = listed.json()
        assert body["total"] == 1
        assert body["posts"][0]["like_count"] == 1
        assert body["posts"][0]["comment_count"] == 1

    @pytest.mark.asyncio
    async def test_posting_needs_a_token(self, test_client, make_user):
        await make_user("Sam")
        response = await test_client.post("/api/wall/Sam", json={"content": "hi"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_repost_twice_conflicts(self, test_client, make_user):
        alex = await make_user("Alex")
        max_ = await make_user("Max")
        created = await test_client.post(
            "/api/wall/Alex", json={"content": "sharing"}, headers=auth_headers(alex)
        )
        post_id = created.json()["id"]

        first = await test_client.post(f"/api/wall/post/{post_id}/repost", headers=auth_headers(max_))
        assert first.status_code == 201
        second = await test_client.post(
            f"/api/wall/post/{post_id}/repost", json={"message": "again"}, headers=auth_headers(max_)
        )
        assert second.status_code == 409

        status = await test_client.get(
            f"/api/wall/post/{post_id}/repost-status", headers=auth_headers(max_)
        )
        assert status.json() == {"has_reposted": True, "repost_count": 1}

    @pytest.mark.asyncio
    async def test_bulk_delete_and_system_post(self, test_client, make_user):
        sam = await make_user("Sam")
        admin = await make_user("Admin", role="admin")

        forbidden = await test_client.post(
            "/api/wall/Sam/system", json={"type": "game", "content": "won"}, headers=auth_headers(sam)
        )
        assert forbidden.status_code == 403

        system = await test_client.post(
            "/api/wall/Sam/system", json={"type": "game", "content": "won"}, headers=auth_headers(admin)
        )
        assert system.status_code == 201

        response = await test_client.request(
            "DELETE",
            "/api/wall/Sam/bulk-delete",
            json={"post_ids": [system.json()["id"]]},
            headers=auth_headers(sam),
        )
        assert response.status_code == 200
        assert response.json() == {"deleted": [system.json()["id"]], "failed": []}
