"""Activity logging service - append-only workspace activity feed."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.db.enums import ActivityType, EntityType
from crm.db.models import Activity

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    workspace_id: UUID,
    activity_type: ActivityType,
    entity_type: EntityType,
    description: str,
    performed_by: UUID | None = None,
    entity_id: UUID | None = None,
    metadata: dict[str, Any] | None = None,
    activity_sub_type: str | None = None,
) -> Activity | None:
    """
    Append an activity entry.

    Best-effort: the insert runs in its own savepoint, so a failure rolls back
    only the activity row and leaves the caller's primary write intact.

    Args:
        db: Database session
        workspace_id: Workspace the activity belongs to
        activity_type: What happened (ActivityType)
        entity_type: What it happened to (EntityType)
        description: Human-readable summary
        performed_by: Acting user (None for system/webhook actions)
        entity_id: Id of the affected entity
        metadata: Type-specific details as JSON
        activity_sub_type: Finer-grained classification (e.g. created_via_webhook)

    Returns:
        The created activity, or None if the write failed
    """
    activity = Activity(
        workspace_id=workspace_id,
        performed_by=performed_by,
        activity_type=ActivityType(activity_type).value,
        activity_sub_type=activity_sub_type,
        entity_type=EntityType(entity_type).value,
        entity_id=entity_id,
        description=description,
        details=metadata,
    )
    try:
        with db.begin_nested():
            db.add(activity)
            db.flush()  # Don't commit - let caller control transaction
    except Exception:
        logger.exception(
            "Failed to write activity",
            extra={"workspace_id": str(workspace_id), "activity_type": activity.activity_type},
        )
        return None
    return activity


def list_activities(
    db: Session,
    workspace_id: UUID,
    limit: int | None = None,
) -> list[Activity]:
    """List a workspace's activities, newest first."""
    if limit is None:
        limit = settings.ACTIVITY_DEFAULT_LIMIT
    limit = max(1, min(limit, settings.ACTIVITY_MAX_LIMIT))
    return list(
        db.scalars(
            select(Activity)
            .where(Activity.workspace_id == workspace_id)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .limit(limit)
        )
    )
