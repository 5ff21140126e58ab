"""Tests for server settings."""

import pytest

from insighter_server.config import ServerSettings


class TestServerSettingsDefaults:
    """Test that ServerSettings provides reasonable defaults."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "INSIGHTER_RATE_LIMIT_ENABLED",
            "INSIGHTER_ENCRYPTION_KEY",
            "INSIGHTER_GOOGLE_CLIENT_ID",
            "INSIGHTER_GOOGLE_CLIENT_SECRET",
            "INSIGHTER_SQLITE_PATH",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_server_defaults(self):
        settings = ServerSettings()
        assert settings.host == "0.0.0.0"
        assert settings.port == 8000
        assert settings.workers == 1
        assert settings.cors_origins == ["*"]

    def test_database_defaults_to_sqlite(self):
        settings = ServerSettings()
        assert settings.database_backend == "sqlite"
        assert settings.sqlite_path.endswith("insighter.db")

    def test_session_defaults(self):
        settings = ServerSettings()
        assert settings.jwt_algorithm == "HS256"
        assert settings.jwt_expiration_hours == 24
        assert settings.session_cookie_name == "access_token"

    def test_oauth_defaults(self):
        settings = ServerSettings()
        assert settings.oauth_state_max_age_seconds == 300
        assert settings.is_google_oauth_configured is False

    def test_rate_limit_defaults(self):
        settings = ServerSettings()
        assert settings.rate_limit_enabled is True
        assert settings.workspace_create_rate_limit == "20 per 15 minutes"


class TestServerSettingsEnvironment:

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("INSIGHTER_PORT", "9100")
        monkeypatch.setenv("INSIGHTER_DATABASE_BACKEND", "postgres")
        settings = ServerSettings()
        assert settings.port == 9100
        assert settings.database_backend == "postgres"

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("INSIGHTER_DATABASE_BACKEND", "oracle")
        with pytest.raises(ValueError):
            ServerSettings()

    def test_postgres_url(self):
        settings = ServerSettings(
            postgres_host="db",
            postgres_port=5433,
            postgres_user="app",
            postgres_password="pw",
            postgres_database="insighter",
        )
        assert settings.postgres_url == "postgresql+asyncpg://app:pw@db:5433/insighter"

    def test_google_oauth_configured(self):
        settings = ServerSettings(google_client_id="id", google_client_secret="secret")
        assert settings.is_google_oauth_configured is True
