"""Database module for Insighter Server.

This module provides the relational store for the tenancy hierarchy:
- ORM models (organizations → workspaces → agents, files, connections)
- Support for both SQLite (development) and PostgreSQL (production)
"""

from insighter_server.database.models import (
    Base,
    User,
    Organization,
    OrganizationMember,
    OrganizationInvitation,
    Workspace,
    WorkspaceMember,
    AIAgent,
    AgentAccess,
    FileUpload,
    FileSummary,
    ExternalConnection,
    OAuthToken,
    WorkspaceDataSource,
    DatabaseConnection,
)
from insighter_server.database.factory import DatabaseFactory, get_db_session

__all__ = [
    "Base",
    "User",
    "Organization",
    "OrganizationMember",
    "OrganizationInvitation",
    "Workspace",
    "WorkspaceMember",
    "AIAgent",
    "AgentAccess",
    "FileUpload",
    "FileSummary",
    "ExternalConnection",
    "OAuthToken",
    "WorkspaceDataSource",
    "DatabaseConnection",
    "DatabaseFactory",
    "get_db_session",
]
