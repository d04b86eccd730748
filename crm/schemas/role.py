"""Pydantic schemas for roles and the permission catalog."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    permissions: list[str] = Field(default_factory=list)
    is_default: bool = False


class RoleUpdate(BaseModel):
    """Partial update."""
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    permissions: list[str] | None = None
    is_default: bool | None = None


class RoleRead(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    description: str | None
    permissions: list[str]
    is_default: bool
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PermissionInfo(BaseModel):
    """Permission catalog entry."""
    key: str
    label: str
    description: str
    category: str
