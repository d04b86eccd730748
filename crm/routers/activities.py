"""Activity feed API endpoint."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.deps import authorize_workspace, get_current_user, get_db
from crm.core.permissions import Action, Resource
from crm.schemas.activity import ActivityRead
from crm.services import activity_service

router = APIRouter(prefix="/activities", tags=["Activities"])


@router.get("", response_model=list[ActivityRead])
def list_activities(
    workspace_id: UUID | None = None,
    limit: int = Query(settings.ACTIVITY_DEFAULT_LIMIT, ge=1, le=settings.ACTIVITY_MAX_LIMIT),
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest-first activity for a workspace; empty without a workspace."""
    if workspace_id is None:
        return []
    authorize_workspace(db, user, workspace_id, Resource.ACTIVITIES, Action.READ)
    return activity_service.list_activities(db, workspace_id, limit)
