"""Pydantic schemas for leads."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from crm.db.enums import LeadStatus

# Largest value that fits Numeric(12, 2)
MAX_LEAD_VALUE = 9_999_999_999.99


class LeadCreate(BaseModel):
    """Request to create a lead."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    source: str = Field("manual", max_length=100)
    value: float = Field(0, ge=0, le=MAX_LEAD_VALUE)
    status: LeadStatus | None = None  # None -> workspace default
    assigned_to: UUID | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class LeadUpdate(BaseModel):
    """Request to update a lead (partial)."""
    name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    source: str | None = Field(None, max_length=100)
    value: float | None = Field(None, ge=0, le=MAX_LEAD_VALUE)
    status: LeadStatus | None = None
    assigned_to: UUID | None = None
    tags: list[str] | None = None
    notes: str | None = None
    custom_fields: dict[str, Any] | None = None


class LeadRead(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    email: str | None
    phone: str | None
    company: str | None
    source: str
    value: float
    status: LeadStatus
    assigned_to: UUID | None
    tags: list[str]
    notes: str | None
    custom_fields: dict[str, Any]
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WebhookLeadData(BaseModel):
    """Lead fields extracted from an inbound webhook, checked before insert."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(None, max_length=320)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    source: str = Field(..., min_length=1, max_length=100)
    value: float = Field(0, ge=0, le=MAX_LEAD_VALUE)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
