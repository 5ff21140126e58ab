"""Tests for registration, login and session handling."""

from conftest import TEST_PASSWORD, register_user


class TestRegister:

    def test_register_returns_201(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "Alice@Example.com", "password": TEST_PASSWORD, "name": "Alice"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "alice@example.com"
        assert data["status"] == "active"
        assert "password_hash" not in data

    def test_duplicate_email_returns_409(self, client):
        body = {"email": "bob@example.com", "password": TEST_PASSWORD, "name": "Bob"}
        assert client.post("/api/v1/auth/register", json=body).status_code == 201
        response = client.post("/api/v1/auth/register", json=body)
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_short_password_rejected(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "c@example.com", "password": "123", "name": "C"},
        )
        assert response.status_code == 400


class TestLogin:

    def test_login_returns_token_and_user(self, client):
        register_user(client, "dana@example.com", "Dana")
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "dana@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == 24 * 3600
        assert data["user"]["email"] == "dana@example.com"

    def test_wrong_password_returns_401(self, client):
        register_user(client, "erin@example.com")
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "erin@example.com", "password": "wrong-password"},
        )
        assert response.status_code == 401

    def test_unknown_email_returns_401(self, client):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401

    def test_login_sets_session_cookie(self, client):
        register_user(client, "frank@example.com")
        client.post(
            "/api/v1/auth/login",
            json={"email": "frank@example.com", "password": TEST_PASSWORD},
        )
        assert client.cookies.get("access_token")

    def test_session_cookie_does_not_authenticate_api(self, client):
        register_user(client, "ivy@example.com")
        client.post(
            "/api/v1/auth/login",
            json={"email": "ivy@example.com", "password": TEST_PASSWORD},
        )
        assert client.cookies.get("access_token")

        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"


class TestMe:

    def test_me_with_bearer(self, client):
        headers = register_user(client, "gina@example.com", "Gina")
        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Gina"
        assert data["last_login_at"] is not None

    def test_logout_clears_cookie(self, client):
        register_user(client, "hank@example.com")
        client.post(
            "/api/v1/auth/login",
            json={"email": "hank@example.com", "password": TEST_PASSWORD},
        )
        assert client.post("/api/v1/auth/logout").status_code == 204
        assert not client.cookies.get("access_token")
