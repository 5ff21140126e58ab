"""Engine and session management.

One lazily created async engine per process: SQLite through aiosqlite for
development, PostgreSQL through asyncpg in production.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from insighter_server.config import ServerSettings, get_settings
from insighter_server.database.models import Base

logger = logging.getLogger(__name__)


def _engine_options(settings: ServerSettings) -> dict[str, Any]:
    if settings.database_backend == "postgres":
        return {
            "pool_size": settings.postgres_pool_size,
            "max_overflow": settings.postgres_max_overflow,
            "pool_pre_ping": True,
        }
    # aiosqlite hands connections across threads
    return {"connect_args": {"check_same_thread": False}}


class DatabaseFactory:
    """Process-wide holder of the engine and session factory."""

    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def get_database_url(cls) -> str:
        """Build the async driver URL for the configured backend."""
        settings = get_settings()
        if settings.database_backend == "postgres":
            return settings.postgres_url

        sqlite_path = Path(settings.sqlite_path).expanduser()
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{sqlite_path}"

    @classmethod
    async def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            settings = get_settings()
            cls._engine = create_async_engine(
                cls.get_database_url(), echo=False, **_engine_options(settings)
            )
            logger.info(f"Database engine created: {settings.database_backend}")
        return cls._engine

    @classmethod
    async def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None:
            cls._session_factory = async_sessionmaker(
                await cls.get_engine(),
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return cls._session_factory

    @classmethod
    async def create_tables(cls) -> None:
        engine = await cls.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    @classmethod
    async def drop_tables(cls) -> None:
        engine = await cls.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database tables dropped")

    @classmethod
    async def ping(cls) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            engine = await cls.get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False
        return True

    @classmethod
    def reset(cls) -> None:
        """Forget the engine without disposing it (settings changed)."""
        cls._engine = None
        cls._session_factory = None

    @classmethod
    async def close(cls) -> None:
        """Dispose the engine and its pooled connections."""
        if cls._engine is not None:
            await cls._engine.dispose()
            logger.info("Database connections closed")
        cls.reset()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on success and rolls back on error.

    Usage:
        async with get_db_session() as db:
            ...
    """
    factory = await DatabaseFactory.get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
