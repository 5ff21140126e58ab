"""Test configuration and fixtures."""

import os

# Must be set before insighter_server is imported; the limiter reads it once
os.environ["INSIGHTER_RATE_LIMIT_ENABLED"] = "false"
os.environ["INSIGHTER_ENCRYPTION_KEY"] = "0123456789abcdef" * 4
os.environ["INSIGHTER_GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["INSIGHTER_GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["INSIGHTER_PASSWORD_HASH_ITERATIONS"] = "1000"

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from insighter_server.config import get_settings
from insighter_server.database import DatabaseFactory, get_db_session
from insighter_server.main import create_app
from insighter_server.oauth.connectors import GoogleOAuthConnector, get_connector_factory

TEST_PASSWORD = "secret123"


def _reset_database(sqlite_path: str, monkeypatch) -> None:
    monkeypatch.setenv("INSIGHTER_SQLITE_PATH", sqlite_path)
    get_settings.cache_clear()
    DatabaseFactory.reset()


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create a test app bound to a fresh SQLite database."""
    _reset_database(str(tmp_path / "insighter.db"), monkeypatch)
    app = create_app()
    yield app
    get_settings.cache_clear()


@pytest.fixture
def client(app) -> TestClient:
    """Create test client; the lifespan creates the tables."""
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def db(tmp_path, monkeypatch):
    """Async session on a fresh database, for service-level tests."""
    _reset_database(str(tmp_path / "insighter.db"), monkeypatch)
    await DatabaseFactory.create_tables()
    async with get_db_session() as session:
        yield session
    await DatabaseFactory.close()
    get_settings.cache_clear()


def register_user(client: TestClient, email: str, name: str = "Test User") -> dict[str, str]:
    """Register and log in a user, returning bearer headers.

    The login cookie is cleared so that requests are only authenticated
    through the headers they pass.
    """
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": TEST_PASSWORD, "name": name},
    )
    assert response.status_code == 201, response.text
    response = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def user_id_of(client: TestClient, headers: dict[str, str]) -> str:
    return client.get("/api/v1/auth/me", headers=headers).json()["user_id"]


def run_query(client: TestClient, statement) -> list:
    """Run a SELECT on the app's event loop and return the scalars."""

    async def _run():
        async with get_db_session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    return client.portal.call(_run)


@pytest.fixture
def owner_headers(client) -> dict[str, str]:
    return register_user(client, "owner@example.com", "Owner")


@pytest.fixture
def organization(client, owner_headers) -> dict:
    response = client.post(
        "/api/v1/organizations",
        json={"name": "Acme", "description": "Test organization"},
        headers=owner_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def workspace(client, owner_headers, organization) -> dict:
    response = client.post(
        "/api/v1/workspaces",
        json={"organization_id": organization["organization_id"], "name": "Sales"},
        headers=owner_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def outsider_headers(client) -> dict[str, str]:
    return register_user(client, "outsider@example.com", "Outsider")


class FakeGoogle:
    """Token endpoint double recording every exchange."""

    def __init__(self, status_code: int = 200, payload: dict | None = None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {
            "access_token": "ya29.access",
            "refresh_token": "1//refresh",
            "expires_in": 3599,
            "token_type": "Bearer",
        }
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def resolve(self, connection_type: str) -> GoogleOAuthConnector:
        return GoogleOAuthConnector(connection_type, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_google(app) -> FakeGoogle:
    """Route connector token exchanges to an in-memory Google."""
    fake = FakeGoogle()
    app.dependency_overrides[get_connector_factory] = lambda: fake.resolve
    yield fake
    app.dependency_overrides.clear()
