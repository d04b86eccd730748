"""Pydantic schemas for webhook endpoints, delivery logs and inbound results."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from crm.db.enums import WebhookEventType, WebhookType
from crm.services.webhooks.custom_rules import validate_rules


def _check_rules(value: dict[str, Any] | None) -> dict[str, Any] | None:
    if value:
        validate_rules(value)
    return value


class WebhookEndpointCreate(BaseModel):
    workspace_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    events: list[WebhookEventType] | None = None
    webhook_type: WebhookType = WebhookType.CUSTOM
    transformation_rules: dict[str, Any] | None = None

    @field_validator("transformation_rules")
    @classmethod
    def check_rules(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return _check_rules(value)


class WebhookEndpointUpdate(BaseModel):
    """Partial update. url, token and secret are immutable."""
    name: str | None = Field(None, min_length=1, max_length=255)
    events: list[WebhookEventType] | None = None
    is_active: bool | None = None
    webhook_type: WebhookType | None = None
    transformation_rules: dict[str, Any] | None = None

    @field_validator("transformation_rules")
    @classmethod
    def check_rules(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return _check_rules(value)


class WebhookEndpointRead(BaseModel):
    id: UUID
    workspace_id: UUID
    name: str
    url: str
    is_active: bool
    events: list[str]
    webhook_type: WebhookType
    transformation_rules: dict[str, Any] | None
    created_by: UUID | None
    total_requests: int
    successful_requests: int
    failed_requests: int
    last_triggered_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WebhookEndpointCreated(WebhookEndpointRead):
    """Create response: the only time the signing secret is returned."""
    secret: str


class WebhookLogRead(BaseModel):
    id: UUID
    webhook_endpoint_id: UUID
    workspace_id: UUID
    request_id: str | None
    event_type: str | None
    payload: Any
    response_status: int
    response_body: dict[str, Any] | None
    error_message: str | None
    lead_id: UUID | None
    method: str | None
    url: str | None
    user_agent: str | None
    ip_address: str | None
    processing_time_ms: int | None
    processed_at: datetime

    model_config = {"from_attributes": True}
