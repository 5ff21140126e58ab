"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from insighter_server import __version__
from insighter_server.api.deps import request_id_middleware, setup_exception_handlers
from insighter_server.api.v1 import (
    agents,
    auth,
    data_sources,
    database_connections,
    external_connections,
    files,
    health,
    invitations,
    oauth,
    organizations,
    workspaces,
)
from insighter_server.config import get_settings
from insighter_server.core.rate_limit import limiter
from insighter_server.database import DatabaseFactory

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Creates the tables on startup and disposes the engine on shutdown.
    """
    settings = get_settings()

    await DatabaseFactory.create_tables()
    logger.info("Database tables initialized")

    if not settings.encryption_key:
        logger.warning("INSIGHTER_ENCRYPTION_KEY is not set; connection writes will fail")
    if not settings.is_google_oauth_configured:
        logger.warning("Google OAuth client is not configured")

    logger.info(f"Insighter Server v{__version__} starting...")
    logger.info(f"Listening on {settings.host}:{settings.port}")

    yield

    await DatabaseFactory.close()
    logger.info("Insighter Server shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Insighter Server",
        description="Insighter REST API - organizations, workspaces, agents and data connections",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.limiter = limiter

    # Setup CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup request ID middleware
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_id_middleware)

    # Setup exception handlers
    setup_exception_handlers(app)

    # Include API routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(organizations.router, prefix="/api/v1")
    app.include_router(invitations.router, prefix="/api/v1")
    app.include_router(workspaces.router, prefix="/api/v1")
    app.include_router(agents.router, prefix="/api/v1")
    app.include_router(files.router, prefix="/api/v1")
    app.include_router(data_sources.router, prefix="/api/v1")
    app.include_router(external_connections.router, prefix="/api/v1")
    app.include_router(database_connections.router, prefix="/api/v1")
    app.include_router(oauth.router, prefix="/api/v1")

    return app


# Create app instance
app = create_app()


def run():
    """Run the server using uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "insighter_server.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        reload=False,
    )


if __name__ == "__main__":
    run()
