"""Pydantic data models."""

from insighter_server.models.common import ErrorResponse, HealthResponse, Name

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "Name",
]
