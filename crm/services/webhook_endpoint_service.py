"""Webhook endpoint registry: inbound URLs, tokens, secrets and delivery logs."""

from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.security import generate_webhook_secret, generate_webhook_token
from crm.db.enums import (
    DEFAULT_WEBHOOK_EVENTS, ActivityType, EntityType, WebhookEventType, WebhookType,
)
from crm.db.models import WebhookEndpoint, WebhookLog
from crm.services import activity_service
from crm.services.webhooks.custom_rules import validate_rules

logger = logging.getLogger(__name__)

# Regenerate the token on the (practically impossible) unique collision
MAX_TOKEN_ATTEMPTS = 3

UPDATABLE_FIELDS = ("name", "events", "is_active", "webhook_type", "transformation_rules")
# NOT NULL columns; a null events list falls back to the defaults instead
REQUIRED_FIELDS = ("name", "is_active", "webhook_type")


class WebhookEndpointError(Exception):
    """Base exception for webhook endpoint errors."""

    pass


class WebhookEndpointNotFoundError(WebhookEndpointError):
    pass


class InvalidWebhookConfigError(WebhookEndpointError, ValueError):
    """Unknown event/webhook type, malformed rules, or a required field set to null."""

    pass


def build_receive_url(token: str) -> str:
    return f"{settings.API_BASE_URL.rstrip('/')}/webhooks/receive/{token}"


def _normalize_events(events: Iterable[str] | None) -> list[str]:
    if events is None:
        return list(DEFAULT_WEBHOOK_EVENTS)
    try:
        return sorted({WebhookEventType(e).value for e in events})
    except ValueError as e:
        raise InvalidWebhookConfigError(str(e))


def _normalize_type(webhook_type: str | WebhookType) -> str:
    try:
        return WebhookType(webhook_type).value
    except ValueError as e:
        raise InvalidWebhookConfigError(str(e))


def _normalize_rules(rules: dict[str, Any] | None) -> dict[str, Any] | None:
    if not rules:
        return None
    try:
        return validate_rules(rules)
    except ValueError as e:
        raise InvalidWebhookConfigError(str(e))


# =============================================================================
# Endpoint CRUD
# =============================================================================

def create_endpoint(
    db: Session,
    workspace_id: UUID,
    name: str,
    created_by: UUID | None,
    events: Iterable[str] | None = None,
    webhook_type: str | WebhookType = WebhookType.CUSTOM,
    transformation_rules: dict[str, Any] | None = None,
) -> WebhookEndpoint:
    """
    Create an inbound endpoint with a fresh URL token and signing secret.

    The token (128-bit hex) is the last segment of the URL and the dispatch
    key for inbound requests; the secret (256-bit hex) signs payloads.
    """
    events = _normalize_events(events)
    webhook_type = _normalize_type(webhook_type)
    transformation_rules = _normalize_rules(transformation_rules)

    for _ in range(MAX_TOKEN_ATTEMPTS):
        token = generate_webhook_token()
        endpoint = WebhookEndpoint(
            workspace_id=workspace_id,
            name=name.strip(),
            url=build_receive_url(token),
            token=token,
            secret=generate_webhook_secret(),
            is_active=True,
            events=events,
            webhook_type=webhook_type,
            transformation_rules=transformation_rules,
            created_by=created_by,
        )
        try:
            with db.begin_nested():
                db.add(endpoint)
                db.flush()
            break
        except IntegrityError:
            logger.warning("Webhook token collision, regenerating", extra={"workspace_id": str(workspace_id)})
    else:
        raise WebhookEndpointError("Could not allocate a unique webhook URL")

    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.CREATED,
        entity_type=EntityType.WEBHOOK,
        entity_id=endpoint.id,
        performed_by=created_by,
        description=f"Webhook '{endpoint.name}' created",
        metadata={"webhook_type": webhook_type, "events": events},
    )
    return endpoint


def list_endpoints(db: Session, workspace_id: UUID) -> list[WebhookEndpoint]:
    return list(
        db.scalars(
            select(WebhookEndpoint)
            .where(WebhookEndpoint.workspace_id == workspace_id)
            .order_by(WebhookEndpoint.created_at.desc())
        )
    )


def get_endpoint(db: Session, endpoint_id: UUID) -> WebhookEndpoint:
    endpoint = db.get(WebhookEndpoint, endpoint_id)
    if not endpoint:
        raise WebhookEndpointNotFoundError("Webhook not found")
    return endpoint


def get_active_endpoint_by_token(db: Session, token: str) -> WebhookEndpoint | None:
    """Dispatch lookup for inbound requests; inactive endpoints resolve to None."""
    return db.scalar(
        select(WebhookEndpoint).where(
            WebhookEndpoint.token == token,
            WebhookEndpoint.is_active.is_(True),
        )
    )


def update_endpoint(
    db: Session,
    endpoint: WebhookEndpoint,
    fields: dict[str, Any],
    actor_user_id: UUID | None = None,
) -> WebhookEndpoint:
    """
    Update mutable endpoint settings.

    url, token and secret are never touched.
    """
    cleared = sorted(f for f in REQUIRED_FIELDS if f in fields and fields[f] is None)
    if cleared:
        raise InvalidWebhookConfigError(f"Fields cannot be null: {', '.join(cleared)}")

    changed: list[str] = []
    for field, value in fields.items():
        if field not in UPDATABLE_FIELDS:
            continue
        if field == "events":
            value = _normalize_events(value)
        elif field == "webhook_type":
            value = _normalize_type(value)
        elif field == "transformation_rules":
            value = _normalize_rules(value)
        elif field == "name":
            value = value.strip()
        if getattr(endpoint, field) == value:
            continue
        setattr(endpoint, field, value)
        changed.append(field)

    if not changed:
        return endpoint
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=endpoint.workspace_id,
        activity_type=ActivityType.UPDATED,
        entity_type=EntityType.WEBHOOK,
        entity_id=endpoint.id,
        performed_by=actor_user_id,
        description=f"Webhook '{endpoint.name}' updated",
        metadata={"fields": changed},
    )
    return endpoint


def deactivate(
    db: Session,
    endpoint: WebhookEndpoint,
    actor_user_id: UUID | None = None,
) -> WebhookEndpoint:
    """Soft-disable an endpoint. Logs are retained."""
    if not endpoint.is_active:
        return endpoint
    endpoint.is_active = False
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=endpoint.workspace_id,
        activity_type=ActivityType.DELETED,
        entity_type=EntityType.WEBHOOK,
        entity_id=endpoint.id,
        performed_by=actor_user_id,
        description=f"Webhook '{endpoint.name}' deactivated",
    )
    return endpoint


# =============================================================================
# Delivery Logs
# =============================================================================

def list_logs(db: Session, endpoint_id: UUID, limit: int = 50) -> list[WebhookLog]:
    """Delivery attempts for an endpoint, newest first."""
    limit = max(1, min(limit, settings.WEBHOOK_LOG_MAX_LIMIT))
    return list(
        db.scalars(
            select(WebhookLog)
            .where(WebhookLog.webhook_endpoint_id == endpoint_id)
            .order_by(WebhookLog.processed_at.desc(), WebhookLog.id.desc())
            .limit(limit)
        )
    )
