"""
Tests for authentication endpoints (signup and login) and token handling.

These tests verify:
  - Successful signup creates a USER and returns a JWT
  - Duplicate username or email is rejected (409 Conflict)
  - Successful login returns a valid JWT
  - Wrong password and unknown username get the same 401 (anti-enumeration)
  - Invalid signup input is rejected (422 Validation Error)
  - Protected endpoints reject missing, malformed and orphaned tokens
"""

from bankcards.security import create_access_token


# ---------------------------------------------------------------------------
# Signup Tests
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_success(self, client):
        """A valid signup should return 201 with user_id, role and token."""
        response = await client.post(
            "/auth/signup",
            json={
                "username": "jane_doe",
                "email": "jane@example.com",
                "password": "StrongPass99!",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "jane_doe"
        assert data["role"] == "user"
        assert data["token_type"] == "bearer"
        assert "token" in data
        assert "user_id" in data

    async def test_signup_duplicate_username(self, client):
        """Signing up with a taken username should return 409."""
        await client.post(
            "/auth/signup",
            json={"username": "dupe", "email": "a@example.com", "password": "StrongPass99!"},
        )
        response = await client.post(
            "/auth/signup",
            json={"username": "dupe", "email": "b@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_user"
        assert "Username" in response.json()["detail"]

    async def test_signup_duplicate_email(self, client):
        """Signing up with a registered email should return 409."""
        await client.post(
            "/auth/signup",
            json={"username": "first", "email": "same@example.com", "password": "StrongPass99!"},
        )
        response = await client.post(
            "/auth/signup",
            json={"username": "second", "email": "same@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 409
        assert "Email" in response.json()["detail"]

    async def test_signup_short_password(self, client):
        response = await client.post(
            "/auth/signup",
            json={"username": "shorty", "email": "s@example.com", "password": "short"},
        )
        assert response.status_code == 422

    async def test_signup_invalid_username(self, client):
        """Usernames are limited to letters, digits and _ . -"""
        response = await client.post(
            "/auth/signup",
            json={"username": "bad name!", "email": "x@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 422

    async def test_signup_invalid_email(self, client):
        response = await client.post(
            "/auth/signup",
            json={"username": "noemail", "email": "not-an-email", "password": "StrongPass99!"},
        )
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Login Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client):
        await client.post(
            "/auth/signup",
            json={"username": "loginuser", "email": "l@example.com", "password": "StrongPass99!"},
        )
        response = await client.post(
            "/auth/login",
            json={"username": "loginuser", "password": "StrongPass99!"},
        )
        assert response.status_code == 200
        assert response.json()["token"]

    async def test_login_wrong_password(self, client):
        await client.post(
            "/auth/signup",
            json={"username": "loginuser", "email": "l@example.com", "password": "StrongPass99!"},
        )
        response = await client.post(
            "/auth/login",
            json={"username": "loginuser", "password": "WrongPass99!"},
        )
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_credentials"

    async def test_login_unknown_username_same_error(self, client):
        """Unknown usernames get exactly the same response as wrong passwords."""
        response = await client.post(
            "/auth/login",
            json={"username": "ghost", "password": "Whatever99!"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"


# ---------------------------------------------------------------------------
# Token Tests
# ---------------------------------------------------------------------------

class TestTokens:
    """Tests for bearer token validation on protected endpoints."""

    async def test_missing_token(self, client):
        response = await client.get("/cards/my")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get(
            "/cards/my", headers={"Authorization": "Bearer not.a.jwt"}
        )
        assert response.status_code == 401

    async def test_token_for_unknown_user(self, client):
        """A correctly signed token whose user doesn't exist is rejected."""
        token = create_access_token(data={"sub": "00000000-0000-0000-0000-000000000000"})
        response = await client.get(
            "/cards/my", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_token_with_non_uuid_subject(self, client):
        token = create_access_token(data={"sub": "admin"})
        response = await client.get(
            "/cards/my", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_health_is_public(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
