"""
Snipply Backend — Auth Route Tests
====================================

What:  HTTP-level tests for registration, login, logout, /me and the admin
       bootstrap, driven through httpx against the ASGI app.

What we test:
    ✅ Register signs the user in and never returns the password
    ✅ Duplicate username/email and invalid bodies answer 400
    ✅ Login with wrong credentials answers 401
    ✅ Logout clears the session
    ✅ Admin bootstrap is hidden unless enabled, and runs once
"""

import pytest

from conftest import register
from snipply.config import settings


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_signs_in(self, make_client):
        client = await make_client()
        user = await register(client, "alice", displayName="Alice A.")

        assert user["username"] == "alice"
        assert user["displayName"] == "Alice A."
        assert user["rank"] == "default"
        assert "password" not in user
        assert "passwordHash" not in user

        me = await client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["id"] == user["id"]

    @pytest.mark.asyncio
    async def test_display_name_defaults_to_username(self, make_client):
        user = await register(await make_client(), "bob")
        assert user["displayName"] == "bob"

    @pytest.mark.asyncio
    async def test_client_cannot_choose_rank(self, make_client):
        user = await register(await make_client(), "mallory", rank="admin")
        assert user["rank"] == "default"

    @pytest.mark.asyncio
    async def test_duplicate_username(self, make_client):
        client = await make_client()
        await register(client, "alice")

        response = await client.post(
            "/api/auth/register",
            json={"username": "alice", "password": "password123", "email": "new@snipply.dev"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Username already exists"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, make_client):
        client = await make_client()
        await register(client, "alice")

        response = await client.post(
            "/api/auth/register",
            json={"username": "alice2", "password": "password123", "email": "alice@snipply.dev"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Email already exists"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"username": "alice", "password": "short", "email": "alice@snipply.dev"},
            {"username": "alice", "password": "password123", "email": "not-an-email"},
            {"username": "   ", "password": "password123", "email": "alice@snipply.dev"},
            {"username": "a/b", "password": "password123", "email": "alice@snipply.dev"},
            {"password": "password123", "email": "alice@snipply.dev"},
        ],
    )
    async def test_invalid_bodies_answer_400(self, make_client, body):
        client = await make_client()
        response = await client.post("/api/auth/register", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["error"] == "validation_error"
        assert payload["message"]
        assert "request_id" in payload

    @pytest.mark.asyncio
    async def test_password_over_72_bytes_rejected(self, make_client):
        client = await make_client()
        response = await client.post(
            "/api/auth/register",
            json={"username": "alice", "password": "é" * 40, "email": "alice@snipply.dev"},
        )
        assert response.status_code == 400


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_after_logout(self, make_client):
        client = await make_client()
        user = await register(client, "alice")
        await client.post("/api/auth/logout")

        response = await client.post(
            "/api/auth/login", json={"username": "alice", "password": "password123"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == user["id"]
        assert (await client.get("/api/auth/me")).status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "username,password",
        [("alice", "wrong-password"), ("nobody", "password123")],
    )
    async def test_bad_credentials(self, make_client, username, password):
        client = await make_client()
        await register(client, "alice")
        await client.post("/api/auth/logout")

        response = await client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"
        assert (await client.get("/api/auth/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_missing_fields(self, make_client):
        response = await (await make_client()).post("/api/auth/login", json={"username": "alice"})
        assert response.status_code == 400


class TestSession:

    @pytest.mark.asyncio
    async def test_me_without_session(self, make_client):
        response = await (await make_client()).get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.json()["message"] == "Authentication required"

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, make_client):
        client = await make_client()
        await register(client, "alice")

        response = await client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        assert (await client.get("/api/auth/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_me_for_deleted_user(self, make_client, memory_store):
        client = await make_client()
        user = await register(client, "alice")
        await memory_store.delete_user_and_snippets(user["id"])

        assert (await client.get("/api/auth/me")).status_code == 404

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, make_client):
        client = await make_client()
        response = await client.get("/api/auth/me", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"
        assert response.json()["request_id"] == "abc12345"


class TestAdminSetup:

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, make_client):
        response = await (await make_client()).post("/api/setup/admin")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_configured_password(self, make_client, monkeypatch):
        monkeypatch.setattr(settings, "admin_setup_enabled", True)
        monkeypatch.setattr(settings, "admin_password", "")

        response = await (await make_client()).post("/api/setup/admin")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_creates_admin_once(self, make_client, monkeypatch):
        monkeypatch.setattr(settings, "admin_setup_enabled", True)
        monkeypatch.setattr(settings, "admin_password", "correct-horse")
        client = await make_client()

        first = await client.post("/api/setup/admin")
        assert first.status_code == 200
        assert first.json()["message"] == "Admin user created successfully"
        assert first.json()["user"]["rank"] == "admin"

        second = await client.post("/api/setup/admin")
        assert second.status_code == 400
        assert second.json()["message"] == "Admin user already exists"

        login = await client.post(
            "/api/auth/login", json={"username": "admin", "password": "correct-horse"}
        )
        assert login.status_code == 200
        assert login.json()["user"]["rank"] == "admin"
