"""SQLAlchemy ORM models for workspaces, access control, leads, and webhooks."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON, Boolean, ForeignKey, Index, Integer, Numeric, String, Text,
    UniqueConstraint, Uuid, func, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.db.base import Base
from crm.db.enums import (
    DEFAULT_LEAD_SOURCE, DEFAULT_LEAD_STATUS, DEFAULT_WEBHOOK_EVENTS,
    MembershipStatus, WebhookType,
)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Tenant & Identity
# =============================================================================

class Workspace(Base):
    """
    A tenant in the multi-tenant system.

    Every lead, role, membership, webhook endpoint and activity belongs to a
    workspace and must be scoped by workspace_id in all queries.
    """
    __tablename__ = "workspaces"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    default_lead_status: Mapped[str] = mapped_column(
        String(50),
        default=DEFAULT_LEAD_STATUS.value,
        server_default=text(f"'{DEFAULT_LEAD_STATUS.value}'"),
        nullable=False,
    )
    owner_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )

    members: Mapped[list["WorkspaceMember"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
    )
    roles: Mapped[list["Role"]] = relationship(
        back_populates="workspace",
        cascade="all, delete-orphan",
    )


class User(Base):
    """
    Application user.

    Identity only. Credentials live with the external identity provider;
    ``token_version`` is bumped to revoke every outstanding bearer token.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    token_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )


# =============================================================================
# Access Control
# =============================================================================

class Role(Base):
    """
    Named set of ``resource:action`` permission strings within a workspace.

    System roles are seeded when the workspace is created and cannot be
    deleted. Exactly one role per workspace should carry is_default.
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name="uq_roles_workspace_name"),
        Index("idx_roles_workspace_id", "workspace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permissions: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    is_default: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )

    workspace: Mapped["Workspace"] = relationship(back_populates="roles")


class WorkspaceMember(Base):
    """
    Links a user to a workspace with a role and a lifecycle status.

    Constraint: UNIQUE(workspace_id, user_id). role_id is nulled when the
    role row disappears; a member without a role is denied everything.
    """
    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
        Index("idx_workspace_members_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("roles.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=MembershipStatus.PENDING.value,
        server_default=text(f"'{MembershipStatus.PENDING.value}'"),
        nullable=False,
    )
    invited_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    joined_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )

    workspace: Mapped["Workspace"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(foreign_keys=[user_id])
    role: Mapped["Role | None"] = relationship(foreign_keys=[role_id])


# =============================================================================
# Leads
# =============================================================================

class Lead(Base):
    """A sales lead, created by hand or by an inbound webhook."""
    __tablename__ = "leads"
    __table_args__ = (
        Index("idx_leads_workspace_status", "workspace_id", "status"),
        Index("idx_leads_workspace_created", "workspace_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source: Mapped[str] = mapped_column(
        String(100), default=DEFAULT_LEAD_SOURCE, nullable=False
    )
    value: Mapped[float] = mapped_column(
        Numeric(12, 2, asdecimal=False), default=0, server_default=text("0"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default=DEFAULT_LEAD_STATUS.value,
        server_default=text(f"'{DEFAULT_LEAD_STATUS.value}'"),
        nullable=False,
    )
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_fields: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )


# =============================================================================
# Inbound Webhooks
# =============================================================================

class WebhookEndpoint(Base):
    """
    Inbound webhook endpoint owned by a workspace.

    ``token`` is the last path segment of ``url`` and the only dispatch key
    (inbound requests carry no workspace context). url, token and secret are
    generated at creation and never change.
    """
    __tablename__ = "webhook_endpoints"
    __table_args__ = (
        Index("idx_webhook_endpoints_workspace_id", "workspace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    secret: Mapped[str] = mapped_column(String(128), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    events: Mapped[list] = mapped_column(
        JSONType, default=lambda: list(DEFAULT_WEBHOOK_EVENTS), nullable=False
    )
    webhook_type: Mapped[str] = mapped_column(
        String(50),
        default=WebhookType.CUSTOM.value,
        server_default=text(f"'{WebhookType.CUSTOM.value}'"),
        nullable=False,
    )
    transformation_rules: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Delivery statistics
    total_requests: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    successful_requests: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    failed_requests: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    last_triggered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, server_default=func.now(), nullable=False
    )


class WebhookLog(Base):
    """
    One row per ingestion attempt against a resolved endpoint.

    Append-only; doubles as the manual retry trail since nothing is
    redelivered automatically.
    """
    __tablename__ = "webhook_logs"
    __table_args__ = (
        Index("idx_webhook_logs_endpoint_processed", "webhook_endpoint_id", "processed_at"),
        Index("idx_webhook_logs_workspace_id", "workspace_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_endpoint_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("webhook_endpoints.id", ondelete="CASCADE"), nullable=False
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    request_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payload: Mapped[Any] = mapped_column(JSONType, nullable=True)
    response_status: Mapped[int] = mapped_column(Integer, nullable=False)
    response_body: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    lead_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True
    )

    # Request capture
    method: Mapped[str | None] = mapped_column(String(10), nullable=True)
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    headers: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    processed_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)


# =============================================================================
# Activity Log
# =============================================================================

class Activity(Base):
    """
    Append-only workspace activity feed.

    The ``metadata`` column is mapped as ``details`` because ``metadata`` is
    reserved on declarative classes.
    """
    __tablename__ = "activities"
    __table_args__ = (
        Index("idx_activities_workspace_created", "workspace_id", "created_at"),
        Index("idx_activities_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    performed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    activity_sub_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow, server_default=func.now(), nullable=False)
