"""Lead CRUD with activity tracking."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.db.enums import DEFAULT_LEAD_SOURCE, ActivityType, EntityType, LeadStatus
from crm.db.models import Lead
from crm.services import activity_service

UPDATABLE_FIELDS = (
    "name", "email", "phone", "company", "source", "value",
    "status", "assigned_to", "tags", "notes", "custom_fields",
)
# NOT NULL columns
REQUIRED_FIELDS = ("name", "source", "value", "status", "tags", "custom_fields")


class LeadServiceError(Exception):
    """Base exception for lead service errors."""

    pass


class LeadNotFoundError(LeadServiceError):
    pass


class InvalidLeadStatusError(LeadServiceError, ValueError):
    """Status is not a LeadStatus value."""

    pass


class InvalidLeadUpdateError(LeadServiceError, ValueError):
    """Update tries to clear a required field."""

    pass


def validate_status(status: str | LeadStatus) -> str:
    try:
        return LeadStatus(status).value
    except ValueError:
        raise InvalidLeadStatusError(f"Invalid lead status: {status}")


def insert_lead(
    db: Session,
    workspace_id: UUID,
    name: str,
    status: str | LeadStatus,
    email: str | None = None,
    phone: str | None = None,
    company: str | None = None,
    source: str | None = None,
    value: float = 0,
    assigned_to: UUID | None = None,
    tags: list[str] | None = None,
    notes: str | None = None,
    custom_fields: dict[str, Any] | None = None,
    created_by: UUID | None = None,
) -> Lead:
    """Insert a lead row without writing an activity."""
    lead = Lead(
        workspace_id=workspace_id,
        name=name,
        email=email,
        phone=phone,
        company=company,
        source=source or DEFAULT_LEAD_SOURCE,
        value=value or 0,
        status=validate_status(status),
        assigned_to=assigned_to,
        tags=list(tags or []),
        notes=notes,
        custom_fields=dict(custom_fields or {}),
        created_by=created_by,
    )
    db.add(lead)
    db.flush()
    return lead


def create_lead(
    db: Session,
    workspace_id: UUID,
    actor_user_id: UUID | None,
    **fields: Any,
) -> Lead:
    """Create a lead and log a `created` activity."""
    lead = insert_lead(db, workspace_id, created_by=actor_user_id, **fields)
    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.CREATED,
        entity_type=EntityType.LEAD,
        entity_id=lead.id,
        performed_by=actor_user_id,
        description=f"Lead '{lead.name}' created",
        metadata={"source": lead.source},
    )
    return lead


def list_leads(
    db: Session,
    workspace_id: UUID,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Lead]:
    """List a workspace's leads, newest first."""
    query = select(Lead).where(Lead.workspace_id == workspace_id)
    if status:
        query = query.where(Lead.status == validate_status(status))
    limit = max(1, min(limit, settings.LEAD_LIST_MAX_LIMIT))
    return list(
        db.scalars(
            query.order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset(max(offset, 0))
            .limit(limit)
        )
    )


def get_lead(db: Session, lead_id: UUID) -> Lead:
    lead = db.get(Lead, lead_id)
    if not lead:
        raise LeadNotFoundError("Lead not found")
    return lead


def update_lead(
    db: Session,
    lead: Lead,
    fields: dict[str, Any],
    actor_user_id: UUID | None = None,
) -> Lead:
    """
    Apply a partial update.

    Logs `updated` for field edits, plus `status_changed` and `assigned`
    entries carrying old/new values.
    """
    cleared = sorted(f for f in REQUIRED_FIELDS if f in fields and fields[f] is None)
    if cleared:
        raise InvalidLeadUpdateError(f"Fields cannot be null: {', '.join(cleared)}")

    changes: dict[str, dict[str, Any]] = {}
    for field, new_value in fields.items():
        if field not in UPDATABLE_FIELDS:
            continue
        if field == "status":
            new_value = validate_status(new_value)
        old_value = getattr(lead, field)
        if old_value == new_value:
            continue
        changes[field] = {"old": old_value, "new": new_value}
        setattr(lead, field, new_value)

    if not changes:
        return lead
    db.flush()

    status_change = changes.pop("status", None)
    assignment = changes.pop("assigned_to", None)

    if changes:
        activity_service.log_activity(
            db=db,
            workspace_id=lead.workspace_id,
            activity_type=ActivityType.UPDATED,
            entity_type=EntityType.LEAD,
            entity_id=lead.id,
            performed_by=actor_user_id,
            description=f"Lead '{lead.name}' updated",
            metadata={"fields": sorted(changes)},
        )
    if status_change:
        activity_service.log_activity(
            db=db,
            workspace_id=lead.workspace_id,
            activity_type=ActivityType.STATUS_CHANGED,
            entity_type=EntityType.LEAD,
            entity_id=lead.id,
            performed_by=actor_user_id,
            description=f"Lead status changed from {status_change['old']} to {status_change['new']}",
            metadata={"old_status": status_change["old"], "new_status": status_change["new"]},
        )
    if assignment:
        activity_service.log_activity(
            db=db,
            workspace_id=lead.workspace_id,
            activity_type=ActivityType.ASSIGNED,
            entity_type=EntityType.LEAD,
            entity_id=lead.id,
            performed_by=actor_user_id,
            description="Lead assignment changed",
            metadata={
                "old_assigned_to": str(assignment["old"]) if assignment["old"] else None,
                "new_assigned_to": str(assignment["new"]) if assignment["new"] else None,
            },
        )
    return lead


def delete_lead(db: Session, lead: Lead, actor_user_id: UUID | None = None) -> None:
    lead_id, name, workspace_id = lead.id, lead.name, lead.workspace_id
    db.delete(lead)
    db.flush()
    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.DELETED,
        entity_type=EntityType.LEAD,
        entity_id=lead_id,
        performed_by=actor_user_id,
        description=f"Lead '{name}' deleted",
    )
