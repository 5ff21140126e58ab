"""Health check endpoint."""

import time

from fastapi import APIRouter

from insighter_server import __version__
from insighter_server.database import DatabaseFactory
from insighter_server.models import HealthResponse

router = APIRouter(tags=["health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report version, uptime and whether the database answers.

    Unauthenticated. ``status`` is ``degraded`` when the database ping fails.
    """
    database_ok = await DatabaseFactory.ping()
    return HealthResponse(
        status="ok" if database_ok else "degraded",
        version=__version__,
        uptime=time.time() - _start_time,
        database="ok" if database_ok else "unreachable",
    )
