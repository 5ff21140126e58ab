"""ORM models for the Insighter Server database.

Every entity carries an integer surrogate key plus a string public id
(UUID4) that the API exposes and foreign keys reference.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Timestamp stored with time zone and always read back as aware UTC.

    SQLite drops the offset on storage, so naive values coming back are
    tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class User(Base):
    """User account table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    name = Column(String(128), nullable=False)
    password_hash = Column(String(256))
    status = Column(String(32), default="active", comment="active, inactive, suspended")
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())
    last_login_at = Column(UTCDateTime)

    organization_memberships = relationship(
        "OrganizationMember", back_populates="user", cascade="all, delete-orphan"
    )


class Organization(Base):
    """Organization (tenant) table."""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text)
    status = Column(String(32), default="active", comment="active, inactive")
    created_by = Column(String(64), ForeignKey("users.user_id", ondelete="SET NULL"))
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")
    workspaces = relationship("Workspace", back_populates="organization", cascade="all, delete-orphan")


class OrganizationMember(Base):
    """Organization membership table."""

    __tablename__ = "organization_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(
        String(64), ForeignKey("organizations.organization_id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String(64), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    role = Column(String(32), nullable=False, default="member", comment="owner, admin, member, viewer")
    status = Column(String(32), default="active")
    created_at = Column(UTCDateTime, default=func.now())

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="organization_memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_organization_member"),
        Index("ix_organization_members_user_id", "user_id"),
    )


class OrganizationInvitation(Base):
    """Pending or processed invitation of an existing user to an organization."""

    __tablename__ = "organization_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invitation_id = Column(String(64), unique=True, nullable=False, index=True)
    organization_id = Column(
        String(64), ForeignKey("organizations.organization_id", ondelete="CASCADE"), nullable=False
    )
    email = Column(String(256), nullable=False)
    role = Column(String(32), nullable=False, default="member")
    invited_by = Column(String(64), ForeignKey("users.user_id", ondelete="SET NULL"))
    token = Column(String(128), unique=True, nullable=False, index=True)
    status = Column(String(32), default="pending", comment="pending, accepted, cancelled")
    expires_at = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_organization_invitations_email", "email"),
    )


class Workspace(Base):
    """Workspace table."""

    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(String(64), unique=True, nullable=False, index=True)
    organization_id = Column(
        String(64), ForeignKey("organizations.organization_id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(128), nullable=False)
    description = Column(Text)
    status = Column(String(32), default="active", comment="active, inactive")
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    organization = relationship("Organization", back_populates="workspaces")
    members = relationship("WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_workspaces_organization_id", "organization_id"),
    )


class WorkspaceMember(Base):
    """Workspace membership table."""

    __tablename__ = "workspace_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    role = Column(String(32), nullable=False, default="member", comment="admin, member, viewer")
    status = Column(String(32), default="active")
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="members")

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
        Index("ix_workspace_members_user_id", "user_id"),
    )


class AIAgent(Base):
    """AI agent table, one analyzer agent per workspace."""

    __tablename__ = "ai_agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)
    description = Column(Text)
    agent_type = Column(String(64), default="data_analyzer")
    status = Column(String(32), default="active")
    config = Column(Text, comment="JSON agent config")
    created_by = Column(String(64))
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    access = relationship("AgentAccess", back_populates="agent", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_ai_agents_workspace_id", "workspace_id"),
    )


class AgentAccess(Base):
    """Per-user agent access grants."""

    __tablename__ = "agent_access"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String(64), ForeignKey("ai_agents.agent_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    access_level = Column(String(32), default="read", comment="read, write, admin")
    granted_by = Column(String(64))
    is_active = Column(Boolean, default=True)
    granted_at = Column(UTCDateTime, default=func.now())

    agent = relationship("AIAgent", back_populates="access")

    __table_args__ = (
        UniqueConstraint("agent_id", "user_id", name="uq_agent_access"),
    )


class FileUpload(Base):
    """Uploaded file metadata."""

    __tablename__ = "file_uploads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    original_name = Column(String(512), nullable=False)
    file_type = Column(String(128))
    file_size = Column(BigInteger, default=0)
    storage_path = Column(String(1024))
    upload_status = Column(String(32), default="completed", comment="pending, completed, failed")
    uploaded_by = Column(String(64))
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    summary = relationship("FileSummary", back_populates="file", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_file_uploads_workspace_id", "workspace_id"),
    )


class FileSummary(Base):
    """Summary attached to an uploaded file."""

    __tablename__ = "file_summaries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    summary_id = Column(String(64), unique=True, nullable=False, index=True)
    file_id = Column(String(64), ForeignKey("file_uploads.file_id", ondelete="CASCADE"), unique=True, nullable=False)
    summary = Column(Text, nullable=False)
    key_points = Column(Text, comment="JSON array of key points")
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    file = relationship("FileUpload", back_populates="summary")


class ExternalConnection(Base):
    """External (API / OAuth) data connection."""

    __tablename__ = "external_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    name = Column(String(256), nullable=False)
    type = Column(String(64), nullable=False, comment="google-sheets, google-docs, google-analytics, api, web")
    url = Column(String(1024), default="")
    content_type = Column(String(32), default="api", comment="api, document, web")
    config_encrypted = Column(Text, comment="Encrypted JSON config")
    oauth_provider = Column(String(64))
    oauth_scopes = Column(Text, comment="JSON array of scopes")
    sync_frequency = Column(String(32), default="manual")
    connection_status = Column(String(32), default="active")
    is_active = Column(Boolean, default=True)
    last_sync = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    tokens = relationship("OAuthToken", back_populates="connection", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_external_connections_workspace_id", "workspace_id"),
    )


class OAuthToken(Base):
    """Encrypted OAuth tokens for an external connection."""

    __tablename__ = "oauth_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_id = Column(String(64), unique=True, nullable=False, index=True)
    connection_id = Column(
        String(64), ForeignKey("external_connections.connection_id", ondelete="CASCADE"), nullable=False
    )
    provider = Column(String(64), nullable=False)
    access_token_encrypted = Column(Text, nullable=False)
    refresh_token_encrypted = Column(Text)
    token_type = Column(String(32), default="Bearer")
    expires_at = Column(UTCDateTime)
    scope = Column(Text, comment="JSON array of scopes")
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    connection = relationship("ExternalConnection", back_populates="tokens")

    __table_args__ = (
        UniqueConstraint("connection_id", "provider", name="uq_oauth_token_connection_provider"),
    )


class WorkspaceDataSource(Base):
    """Registry of data sources an agent can discover in a workspace."""

    __tablename__ = "workspace_data_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    data_source_id = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    source_type = Column(String(32), nullable=False, comment="file, database, api, document")
    source_id = Column(String(64), nullable=False)
    source_name = Column(String(512))
    is_active = Column(Boolean, default=True)
    last_accessed_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=func.now())

    __table_args__ = (
        Index("ix_workspace_data_sources_workspace_id", "workspace_id"),
    )


class DatabaseConnection(Base):
    """SQL database connection owned by a workspace."""

    __tablename__ = "database_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(String(64), unique=True, nullable=False, index=True)
    workspace_id = Column(String(64), ForeignKey("workspaces.workspace_id", ondelete="CASCADE"), nullable=False)
    name = Column(String(256), nullable=False)
    db_type = Column(String(32), nullable=False, comment="postgresql, mysql, sqlite, redshift")
    host = Column(String(256))
    port = Column(Integer)
    database_name = Column(String(256))
    username = Column(String(256))
    config_encrypted = Column(Text, comment="Encrypted JSON: password, ssl, options")
    connection_status = Column(String(32), default="pending")
    is_active = Column(Boolean, default=True)
    created_by = Column(String(64))
    created_at = Column(UTCDateTime, default=func.now())
    updated_at = Column(UTCDateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_database_connections_workspace_id", "workspace_id"),
    )
