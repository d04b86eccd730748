"""Pydantic schemas for workspaces and members."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from crm.db.enums import LeadStatus, MembershipStatus


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    default_lead_status: LeadStatus = LeadStatus.NEW


class WorkspaceUpdate(BaseModel):
    """Partial update; null is rejected for every field."""
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    default_lead_status: LeadStatus | None = None


class WorkspaceRead(BaseModel):
    id: UUID
    name: str
    slug: str
    default_lead_status: LeadStatus
    owner_user_id: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MemberRead(BaseModel):
    id: UUID
    workspace_id: UUID
    user_id: UUID
    role_id: UUID | None
    status: MembershipStatus
    invited_by: UUID | None
    joined_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MemberUpdate(BaseModel):
    """Change a member's role and/or status."""
    role_id: UUID | None = None
    status: MembershipStatus | None = None


class InviteCreate(BaseModel):
    """Invite a user by email; role defaults to the workspace default role."""
    email: str = Field(..., max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role_id: UUID | None = None
