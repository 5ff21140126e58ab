"""API v1 routes."""

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

__all__ = [
    "agents",
    "auth",
    "data_sources",
    "database_connections",
    "external_connections",
    "files",
    "health",
    "invitations",
    "oauth",
    "organizations",
    "workspaces",
]
