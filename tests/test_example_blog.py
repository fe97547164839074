"""
Example blog application (examples/blog)

Boots the whole example graph and drives it through HTTP.
"""

from types import SimpleNamespace

import pytest

from examples.blog import build_blog_plugins
from examples.blog.auth import AuthService
from examples.blog.passwords import Argon2PasswordManager, create_password_manager_plugin
from examples.blog.testing import TEST_PASSWORD, create_test_app


ADMIN = "admin@example.com"


def cheap_passwords():
    return create_password_manager_plugin(time_cost=1, memory_cost=8, parallelism=1)


# ============================================================================
# Infrastructure
# ============================================================================

class TestInfrastructure:

    @pytest.mark.asyncio
    async def test_health(self):
        async with create_test_app() as app:
            response = await app.inject("GET", "/")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_unhandled_error_hidden(self):
        async with create_test_app() as app:
            response = await app.inject("GET", "/error")

        assert response.status_code == 500
        assert response.json() == {"message": "Internal Server Error"}

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with create_test_app() as app:
            response = await app.inject("GET", "/api/nowhere")

        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}

    @pytest.mark.asyncio
    async def test_cors_preflight_uses_configured_origins(self):
        origin = "http://localhost:5173"
        async with create_test_app(cors_origins=[origin]) as app:
            allowed = await app.inject("OPTIONS", "/api/posts", headers={
                "origin": origin,
                "access-control-request-method": "GET",
            })
            denied = await app.inject("OPTIONS", "/api/posts", headers={
                "origin": "http://evil.example",
                "access-control-request-method": "GET",
            })

        assert allowed.status_code == 200
        assert allowed.headers["access-control-allow-origin"] == origin
        assert denied.status_code == 400

    @pytest.mark.asyncio
    async def test_plugin_tree(self):
        async with create_test_app() as app:
            tree = app.runtime.print_plugins()

        assert "application (/api)" in tree
        assert "users-routes (/api/users)" in tree
        assert "auth-routes (/api/auth)" in tree
        assert "posts-routes (/api/posts)" in tree


# ============================================================================
# Auth
# ============================================================================

class TestAuth:

    @pytest.mark.asyncio
    async def test_login(self):
        async with create_test_app() as app:
            ok = await app.inject("POST", "/api/auth/login", json={"email": ADMIN, "password": TEST_PASSWORD})
            wrong = await app.inject("POST", "/api/auth/login", json={"email": ADMIN, "password": "nope"})
            unknown = await app.inject("POST", "/api/auth/login", json={"email": "x@y.z", "password": TEST_PASSWORD})
            invalid = await app.inject("POST", "/api/auth/login", json={"email": ADMIN})

        assert ok.status_code == 200
        assert ok.json()["success"] is True
        assert wrong.status_code == 401
        assert wrong.json() == {"message": "Invalid email or password."}
        assert unknown.status_code == 401
        assert invalid.status_code == 400

    @pytest.mark.asyncio
    async def test_me(self):
        async with create_test_app() as app:
            anonymous = await app.inject("GET", "/api/users/me")
            me = await app.inject_with_login(ADMIN, "GET", "/api/users/me")

        assert anonymous.status_code == 401
        assert me.json() == {"id": 1, "username": "admin", "email": ADMIN, "roles": ["admin"]}

    @pytest.mark.asyncio
    async def test_configured_admin(self):
        async with create_test_app(admin_email="root@blog.dev", admin_username="root") as app:
            me = await app.inject_with_login("root@blog.dev", "GET", "/api/users/me")

        assert me.json()["username"] == "root"

    @pytest.mark.asyncio
    async def test_current_user_for_testing(self):
        plugins = build_blog_plugins(password_manager=cheap_passwords())

        anonymous = await plugins.current_user.for_testing(SimpleNamespace(headers={}))
        unknown = await plugins.current_user.for_testing(
            SimpleNamespace(headers={"authorization": "Bearer not-a-token"})
        )

        assert anonymous is None
        assert unknown is None


# ============================================================================
# Posts
# ============================================================================

class TestPosts:

    @pytest.mark.asyncio
    async def test_requires_login(self):
        async with create_test_app() as app:
            response = await app.inject("GET", "/api/posts")

        assert response.status_code == 401
        assert response.json() == {"message": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_list_and_create(self):
        async with create_test_app() as app:
            created = await app.inject_with_login(ADMIN, "POST", "/api/posts", json={"title": "second"})
            listed = await app.inject_with_login(ADMIN, "GET", "/api/posts")
            rejected = await app.inject_with_login(ADMIN, "POST", "/api/posts", json={"title": "  "})

        assert created.status_code == 201
        assert created.json() == {"id": 2, "title": "second", "author": "admin"}
        assert [post["title"] for post in listed.json()] == ["my post", "second"]
        assert rejected.status_code == 400


# ============================================================================
# Users
# ============================================================================

class TestUpdatePassword:

    @pytest.mark.asyncio
    async def test_rejects_weak_password(self):
        async with create_test_app() as app:
            response = await app.inject_with_login(ADMIN, "PUT", "/api/users/update-password", json={
                "currentPassword": TEST_PASSWORD,
                "newPassword": "short",
            })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rejects_same_password(self):
        async with create_test_app() as app:
            response = await app.inject_with_login(ADMIN, "PUT", "/api/users/update-password", json={
                "currentPassword": TEST_PASSWORD,
                "newPassword": TEST_PASSWORD,
            })

        assert response.status_code == 400
        assert response.json() == {"message": "New password cannot be the same as the current password."}

    @pytest.mark.asyncio
    async def test_rejects_wrong_current_password(self):
        async with create_test_app() as app:
            response = await app.inject_with_login(ADMIN, "PUT", "/api/users/update-password", json={
                "currentPassword": "Wrong123$",
                "newPassword": "NewPassword1!",
            })

        assert response.status_code == 401
        assert response.json() == {"message": "Invalid current password."}

    @pytest.mark.asyncio
    async def test_updates_password(self):
        async with create_test_app() as app:
            response = await app.inject_with_login(ADMIN, "PUT", "/api/users/update-password", json={
                "currentPassword": TEST_PASSWORD,
                "newPassword": "NewPassword1!",
            })
            old = await app.inject("POST", "/api/auth/login", json={"email": ADMIN, "password": TEST_PASSWORD})
            token = await app.login(ADMIN, "NewPassword1!")

        assert response.status_code == 200
        assert response.json() == {"message": "Password updated successfully"}
        assert old.status_code == 401
        assert token


# ============================================================================
# Collaborators
# ============================================================================

class TestCollaborators:

    @pytest.mark.asyncio
    async def test_password_manager(self):
        manager = Argon2PasswordManager(time_cost=1, memory_cost=8, parallelism=1)
        hashed = await manager.hash("secret")

        assert hashed.startswith("$argon2id$")
        assert await manager.compare("secret", hashed) is True
        assert await manager.compare("other", hashed) is False
        assert await manager.compare("secret", "not-a-hash") is False

    @pytest.mark.asyncio
    async def test_auth_service_tokens_revoked(self):
        manager = Argon2PasswordManager(time_cost=1, memory_cost=8, parallelism=1)
        user = SimpleNamespace(id=1, email=ADMIN, username="admin", roles=["admin"],
                               password=await manager.hash(TEST_PASSWORD))

        class Users:
            async def find_by_email(self, email):
                return user if email == ADMIN else None

        service = AuthService(Users(), manager)
        token = await service.login(ADMIN, TEST_PASSWORD)

        assert (await service.verify_token(token))["username"] == "admin"
        service.revoke_all()
        assert await service.verify_token(token) is None
