"""
Integration tests for complete authentication flows.

Tests end-to-end scenarios:
- Register -> profile with the bearer token
- Login, refresh through the cookie, logout
- Forgot/reset password
- Change password
"""

from urllib.parse import parse_qs, urlparse

from core.config import settings

REGISTER_BODY = {
    "name": "Ann Lee",
    "email": "ann@jobboard.dev",
    "password": "secret123",
    "gender": "Female",
    "address": "Main street 1",
}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestRegisterAndProfile:

    async def test_register_then_profile(self, client):
        response = await client.post("/api/user/register", json=REGISTER_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["STATUS"] == 1
        assert body["MESSAGE"] == "Registration successful"
        assert body["RESULT"]["user"]["userType"] == "candidate"
        assert settings.refresh_cookie_name in response.cookies

        profile = await client.get(
            "/api/user/profile", headers=bearer(body["RESULT"]["accessToken"])
        )
        assert profile.status_code == 200
        assert profile.json()["RESULT"]["user"]["email"] == "ann@jobboard.dev"

    async def test_refresh_cookie_flags(self, client):
        response = await client.post("/api/user/register", json=REGISTER_BODY)
        cookie_header = response.headers["set-cookie"].lower()

        assert "httponly" in cookie_header
        assert "samesite=strict" in cookie_header
        assert "path=/" in cookie_header

    async def test_duplicate_email(self, client):
        await client.post("/api/user/register", json=REGISTER_BODY)
        response = await client.post(
            "/api/user/register", json={**REGISTER_BODY, "email": "ANN@jobboard.dev"}
        )

        assert response.status_code == 400
        assert response.json() == {
            "MESSAGE": "Email already registered. Please login.",
            "STATUS": 0,
            "IS_TOKEN_EXPIRE": 0,
        }

    async def test_missing_field(self, client):
        body = {key: value for key, value in REGISTER_BODY.items() if key != "address"}
        response = await client.post("/api/user/register", json=body)

        assert response.status_code == 400
        assert response.json()["MESSAGE"] == "Address is required"

    async def test_overlong_password(self, client):
        response = await client.post(
            "/api/user/register", json={**REGISTER_BODY, "password": "x" * 100}
        )

        assert response.status_code == 400
        assert response.json()["MESSAGE"] == "Password must be at most 72 bytes"

    async def test_admin_self_registration_blocked(self, client):
        response = await client.post(
            "/api/user/register", json={**REGISTER_BODY, "userType": "admin"}
        )
        assert response.status_code == 400

    async def test_profile_requires_token(self, client):
        response = await client.get("/api/user/profile")

        assert response.status_code == 401
        assert response.json()["MESSAGE"] == "Unauthorized: Missing token"

    async def test_profile_rejects_bad_token(self, client):
        response = await client.get("/api/user/profile", headers=bearer("nope"))

        assert response.status_code == 401
        assert response.json()["MESSAGE"] == "Unauthorized: Invalid or expired token"


class TestLoginRefreshLogout:

    async def test_full_session(self, client, candidate):
        login = await client.post(
            "/api/user/login",
            json={"email": candidate.email, "password": "secret123"},
        )
        assert login.status_code == 200
        assert login.json()["MESSAGE"] == "Login successful"

        # The client replays the refresh cookie
        refresh = await client.post("/api/user/refresh-token")
        assert refresh.status_code == 200
        result = refresh.json()["RESULT"]
        assert result["accessToken"]
        assert "refreshToken" not in result
        assert settings.refresh_cookie_name in refresh.cookies

        profile = await client.get("/api/user/profile", headers=bearer(result["accessToken"]))
        assert profile.status_code == 200

        logout = await client.post("/api/user/logout")
        assert logout.status_code == 200
        assert client.cookies.get(settings.refresh_cookie_name) is None

        again = await client.post("/api/user/refresh-token")
        assert again.status_code == 401
        assert again.json()["MESSAGE"] == "Refresh token is required"

    async def test_logout_without_cookie(self, client):
        response = await client.post("/api/user/logout")

        assert response.status_code == 200
        assert response.json()["RESULT"] == {"message": "Logout successful"}

    async def test_invalid_credentials(self, client, candidate):
        response = await client.post(
            "/api/user/login",
            json={"email": candidate.email, "password": "wrong-pass"},
        )

        assert response.status_code == 401
        assert response.json()["MESSAGE"] == "Invalid email or password"

    async def test_disabled_account(self, client, create_user):
        user = await create_user(email="off@jobboard.dev", is_active=False)
        response = await client.post(
            "/api/user/login",
            json={"email": user.email, "password": "secret123"},
        )

        assert response.status_code == 403
        assert response.json()["MESSAGE"] == "Account is disabled"

    async def test_disabled_after_token_issued(self, client, create_user, session_factory, auth_headers):
        from database.models.users import User

        user = await create_user(email="soon-off@jobboard.dev")
        headers = auth_headers(user)
        async with session_factory() as session:
            stored = await session.get(User, user.id)
            stored.is_active = False
            await session.commit()

        response = await client.get("/api/user/profile", headers=headers)
        assert response.status_code == 403

    async def test_refresh_with_access_token_cookie(self, client, candidate, auth_headers):
        token = auth_headers(candidate)["Authorization"].split(" ", 1)[1]
        client.cookies.set(settings.refresh_cookie_name, token)

        response = await client.post("/api/user/refresh-token")
        assert response.status_code == 401
        assert response.json()["MESSAGE"] == "Invalid or expired refresh token"


class TestPasswordFlows:

    async def test_forgot_and_reset(self, client, candidate, mailer):
        unknown = await client.post("/api/user/forgotpassword", json={"email": "ghost@jobboard.dev"})
        known = await client.post("/api/user/forgotpassword", json={"email": candidate.email})

        assert unknown.status_code == known.status_code == 200
        assert unknown.json() == known.json()
        assert len(mailer.sent) == 1

        link = mailer.sent[0][1]
        query = parse_qs(urlparse(link).query)
        reset = await client.post(
            "/api/user/resetpassword",
            json={
                "email": query["email"][0],
                "token": query["token"][0],
                "newPassword": "brandnew1",
            },
        )
        assert reset.status_code == 200
        assert reset.json()["MESSAGE"] == "Password reset successful"

        login = await client.post(
            "/api/user/login", json={"email": candidate.email, "password": "brandnew1"}
        )
        assert login.status_code == 200

        reuse = await client.post(
            "/api/user/resetpassword",
            json={
                "email": candidate.email,
                "token": query["token"][0],
                "newPassword": "another1",
            },
        )
        assert reuse.status_code == 400
        assert reuse.json()["MESSAGE"] == "Invalid or expired reset token"

    async def test_change_password(self, client, candidate, auth_headers):
        response = await client.patch(
            "/api/user/changepassword",
            json={"currentPassword": "secret123", "newPassword": "changed1"},
            headers=auth_headers(candidate),
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/user/login", json={"email": candidate.email, "password": "changed1"}
        )
        assert login.status_code == 200

    async def test_change_password_requires_auth(self, client):
        response = await client.patch(
            "/api/user/changepassword",
            json={"currentPassword": "secret123", "newPassword": "changed1"},
        )
        assert response.status_code == 401
