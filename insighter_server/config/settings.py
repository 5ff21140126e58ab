"""Server configuration settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Server configuration loaded from environment variables.

    All settings can be configured via environment variables with the
    INSIGHTER_ prefix (e.g., INSIGHTER_HOST, INSIGHTER_ENCRYPTION_KEY).
    """

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["*"]

    # Database backend: sqlite (development) or postgres (production)
    database_backend: Literal["sqlite", "postgres"] = "sqlite"

    # SQLite configuration
    sqlite_path: str = str(Path.home() / ".insighter" / "insighter.db")

    # PostgreSQL configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_database: str = "insighter"
    postgres_pool_size: int = 10
    postgres_max_overflow: int = 20

    # Session tokens
    jwt_secret_key: str = "insighter-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24
    session_cookie_name: str = "access_token"
    password_hash_iterations: int = 200_000

    # Organization invitations
    invitation_expiry_days: int = 7

    # 64 hex characters (32 bytes) used for AES-256-GCM
    encryption_key: str = ""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/api/v1/oauth/google/callback"
    oauth_state_max_age_seconds: int = 300

    # Rate limiting
    rate_limit_enabled: bool = True
    workspace_create_rate_limit: str = "20 per 15 minutes"

    model_config = SettingsConfigDict(
        env_prefix="INSIGHTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def postgres_url(self) -> str:
        """Get PostgreSQL connection URL for async driver."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_database}"
        )

    @property
    def is_google_oauth_configured(self) -> bool:
        """Check if Google OAuth client credentials are present."""
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> ServerSettings:
    """Get cached server settings instance."""
    return ServerSettings()
