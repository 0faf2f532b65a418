"""
Tests for login, logout, token refresh and the access-token guard.
"""
import pytest
from datetime import timedelta
from jose import jwt

from core.config import settings
from core.security import create_access_token
from conftest import USERS_URL, cookies_from, login


def _claims(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=[settings.ALGORITHM])


class TestLogin:
    """POST /login"""

    @pytest.mark.asyncio
    async def test_login_success_sets_cookies_and_body(self, async_client, registered_user, mongo_db):
        response = await login(async_client, registered_user)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["_id"] == registered_user["id"]
        assert "password" not in data["user"]
        assert "refreshToken" not in data["user"]

        access_claims = _claims(data["accessToken"], settings.ACCESS_TOKEN_SECRET)
        refresh_claims = _claims(data["refreshToken"], settings.REFRESH_TOKEN_SECRET)
        assert access_claims["sub"] == registered_user["id"]
        assert refresh_claims["sub"] == registered_user["id"]
        assert access_claims["username"] == registered_user["username"].lower()

        cookies = cookies_from(response)
        assert set(cookies) == {"accessToken", "refreshToken"}
        for header in cookies.values():
            assert "HttpOnly" in header
            assert "Secure" in header
        assert cookies["accessToken"].startswith(f"accessToken={data['accessToken']}")
        assert response.headers["cache-control"].startswith("no-store")

        stored = await mongo_db.users.find_one({"username": registered_user["username"].lower()})
        assert stored["refreshToken"] == data["refreshToken"]

    @pytest.mark.asyncio
    async def test_login_by_username(self, async_client, registered_user):
        response = await async_client.post(
            f"{USERS_URL}/login",
            json={"username": registered_user["username"], "password": registered_user["password"]},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, async_client, registered_user, mongo_db):
        response = await async_client.post(
            f"{USERS_URL}/login",
            json={"email": registered_user["email"], "password": "wrong-password"},
        )

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["message"] == "Invalid user credentials"
        assert cookies_from(response) == {}
        stored = await mongo_db.users.find_one({"email": registered_user["email"].lower()})
        assert "refreshToken" not in stored

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, async_client, mongo_db):
        response = await async_client.post(
            f"{USERS_URL}/login", json={"email": "ghost@example.com", "password": "x"}
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_login_requires_identifier(self, async_client, mongo_db):
        response = await async_client.post(f"{USERS_URL}/login", json={"password": "x"})

        assert response.status_code == 400
        assert response.json()["message"] == "Username or email is required"

    @pytest.mark.asyncio
    async def test_login_missing_password_is_validation_error(self, async_client, mongo_db):
        response = await async_client.post(f"{USERS_URL}/login", json={"email": "a@x.com"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "password"


class TestRefreshToken:
    """POST /refresh-token"""

    @pytest.mark.asyncio
    async def test_refresh_rotates_tokens(self, async_client, registered_user, mongo_db):
        first = (await login(async_client, registered_user)).json()["data"]

        response = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": first["refreshToken"]}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["refreshToken"] != first["refreshToken"]
        assert _claims(data["accessToken"], settings.ACCESS_TOKEN_SECRET)["sub"] == registered_user["id"]
        assert set(cookies_from(response)) == {"accessToken", "refreshToken"}
        stored = await mongo_db.users.find_one({"email": registered_user["email"].lower()})
        assert stored["refreshToken"] == data["refreshToken"]

    @pytest.mark.asyncio
    async def test_refresh_token_from_cookie(self, async_client, registered_user):
        first = (await login(async_client, registered_user)).json()["data"]

        response = await async_client.post(
            f"{USERS_URL}/refresh-token",
            headers={"Cookie": f"refreshToken={first['refreshToken']}"},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_superseded_refresh_token_rejected(self, async_client, registered_user):
        first = (await login(async_client, registered_user)).json()["data"]
        rotated = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": first["refreshToken"]}
        )
        assert rotated.status_code == 200
        async_client.cookies.clear()

        stale = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": first["refreshToken"]}
        )

        assert stale.status_code == 401
        assert stale.json()["message"] == "Refresh token is expired or used"

    @pytest.mark.asyncio
    async def test_stale_refresh_token_after_second_login(self, async_client, registered_user):
        first = (await login(async_client, registered_user)).json()["data"]
        second = (await login(async_client, registered_user)).json()["data"]
        assert first["refreshToken"] != second["refreshToken"]

        response = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": first["refreshToken"]}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh_without_token(self, async_client, mongo_db):
        response = await async_client.post(f"{USERS_URL}/refresh-token")

        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized request"

    @pytest.mark.asyncio
    async def test_refresh_with_garbage_token(self, async_client, mongo_db):
        response = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": "not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid refresh token"

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, async_client, registered_user):
        first = (await login(async_client, registered_user)).json()["data"]

        response = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": first["accessToken"]}
        )

        assert response.status_code == 401


class TestLogout:
    """POST /logout"""

    @pytest.mark.asyncio
    async def test_logout_clears_refresh_token(self, async_client, registered_user, mongo_db):
        tokens = (await login(async_client, registered_user)).json()["data"]

        response = await async_client.post(
            f"{USERS_URL}/logout",
            headers={"Authorization": f"Bearer {tokens['accessToken']}"},
        )

        assert response.status_code == 200
        assert response.json()["data"] == {}
        cleared = cookies_from(response)
        assert set(cleared) == {"accessToken", "refreshToken"}
        assert all("Max-Age=0" in header for header in cleared.values())
        stored = await mongo_db.users.find_one({"email": registered_user["email"].lower()})
        assert "refreshToken" not in stored

        async_client.cookies.clear()
        refresh = await async_client.post(
            f"{USERS_URL}/refresh-token", json={"refreshToken": tokens["refreshToken"]}
        )
        assert refresh.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_requires_auth(self, async_client, mongo_db):
        response = await async_client.post(f"{USERS_URL}/logout")

        assert response.status_code == 401


class TestGuard:
    """Access-token guard on protected routes"""

    @pytest.mark.asyncio
    async def test_no_token_is_unauthorized(self, async_client, mongo_db):
        response = await async_client.get(f"{USERS_URL}/current-user")

        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_token_is_forbidden(self, async_client, mongo_db):
        response = await async_client.get(
            f"{USERS_URL}/current-user", headers={"Authorization": "Bearer garbage"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_expired_token_is_forbidden(self, async_client, registered_user):
        token = create_access_token({"sub": registered_user["id"]}, expires_delta=timedelta(seconds=-5))

        response = await async_client.get(
            f"{USERS_URL}/current-user", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_token_for_missing_user_is_unauthorized(self, async_client, mongo_db):
        token = create_access_token({"sub": "64b7f0c2a1b2c3d4e5f60718"})

        response = await async_client.get(
            f"{USERS_URL}/current-user", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_access_token_cookie(self, async_client, registered_user):
        tokens = (await login(async_client, registered_user)).json()["data"]

        response = await async_client.get(
            f"{USERS_URL}/current-user",
            headers={"Cookie": f"accessToken={tokens['accessToken']}"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["_id"] == registered_user["id"]
