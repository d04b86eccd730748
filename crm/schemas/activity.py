"""Pydantic schemas for the activity feed."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ActivityRead(BaseModel):
    id: UUID
    workspace_id: UUID
    performed_by: UUID | None
    activity_type: str
    activity_sub_type: str | None
    entity_type: str
    entity_id: UUID | None
    description: str
    metadata: dict[str, Any] | None = Field(None, validation_alias="details")
    created_at: datetime

    model_config = {"from_attributes": True}
