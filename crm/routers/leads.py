"""Leads API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.deps import authorize_workspace, get_current_user, get_db, require_permission
from crm.core.permissions import Action, Resource
from crm.db.enums import LeadStatus
from crm.db.models import Lead, Workspace
from crm.schemas.auth import WorkspaceContext
from crm.schemas.lead import LeadCreate, LeadRead, LeadUpdate
from crm.services import lead_service, membership_service
from crm.services.lead_service import InvalidLeadUpdateError, LeadNotFoundError
from crm.services.membership_service import MembershipNotFoundError

router = APIRouter(prefix="/leads", tags=["Leads"])


def _load_lead(db: Session, user, lead_id: UUID, action: Action) -> Lead:
    try:
        lead = lead_service.get_lead(db, lead_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")
    authorize_workspace(db, user, lead.workspace_id, Resource.LEADS, action)
    return lead


def _check_assignee(db: Session, workspace_id: UUID, assignee_id: UUID | None) -> None:
    if assignee_id is None:
        return
    try:
        membership_service.get_membership(db, assignee_id, workspace_id)
    except MembershipNotFoundError:
        raise HTTPException(status_code=400, detail="Assignee is not a member of this workspace")


@router.get("", response_model=list[LeadRead])
def list_leads(
    status: LeadStatus | None = None,
    limit: int = Query(100, ge=1, le=settings.LEAD_LIST_MAX_LIMIT),
    offset: int = Query(0, ge=0),
    ctx: WorkspaceContext = Depends(require_permission(Resource.LEADS, Action.READ)),
    db: Session = Depends(get_db),
):
    """List leads in the workspace, newest first."""
    return lead_service.list_leads(
        db, ctx.workspace_id, status=status.value if status else None, limit=limit, offset=offset
    )


@router.post("", response_model=LeadRead, status_code=201)
def create_lead(
    data: LeadCreate,
    ctx: WorkspaceContext = Depends(require_permission(Resource.LEADS, Action.CREATE)),
    db: Session = Depends(get_db),
):
    _check_assignee(db, ctx.workspace_id, data.assigned_to)
    fields = data.model_dump()
    if fields["status"] is None:
        fields["status"] = db.get(Workspace, ctx.workspace_id).default_lead_status
    lead = lead_service.create_lead(db, ctx.workspace_id, ctx.user_id, **fields)
    db.commit()
    db.refresh(lead)
    return lead


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    lead_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _load_lead(db, user, lead_id, Action.READ)


@router.put("/{lead_id}", response_model=LeadRead)
def update_lead(
    lead_id: UUID,
    data: LeadUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    lead = _load_lead(db, user, lead_id, Action.UPDATE)
    fields = data.model_dump(exclude_unset=True)
    if "assigned_to" in fields:
        _check_assignee(db, lead.workspace_id, fields["assigned_to"])
    if fields.get("status") is not None:
        fields["status"] = fields["status"].value
    try:
        lead_service.update_lead(db, lead, fields, actor_user_id=user.id)
    except InvalidLeadUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(lead)
    return lead


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    lead = _load_lead(db, user, lead_id, Action.DELETE)
    lead_service.delete_lead(db, lead, actor_user_id=user.id)
    db.commit()
    return {"success": True}
