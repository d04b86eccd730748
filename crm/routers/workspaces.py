"""Workspaces and membership API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crm.core.deps import authorize_workspace, get_current_user, get_db
from crm.core.permissions import Action, Resource
from crm.db.enums import MembershipStatus
from crm.schemas.workspace import (
    InviteCreate,
    MemberRead,
    MemberUpdate,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
)
from crm.services import invite_service, membership_service, workspace_service
from crm.services.invite_service import InviteLimitError, InviteNotPendingError
from crm.services.membership_service import (
    DuplicateMembershipError,
    InvalidMembershipRoleError,
    MembershipNotFoundError,
)
from crm.services.workspace_service import (
    DuplicateWorkspaceError,
    InvalidWorkspaceUpdateError,
    WorkspaceNotFoundError,
)

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


@router.post("", response_model=WorkspaceRead, status_code=201)
def create_workspace(
    data: WorkspaceCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a workspace owned by the caller."""
    try:
        workspace = workspace_service.create_workspace(
            db,
            name=data.name,
            owner=user,
            slug=data.slug,
            default_lead_status=data.default_lead_status,
        )
    except DuplicateWorkspaceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(workspace)
    return workspace


@router.get("", response_model=list[WorkspaceRead])
def list_workspaces(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Workspaces where the caller is an active member."""
    return workspace_service.list_workspaces_for_user(db, user.id)


@router.get("/{workspace_id}", response_model=WorkspaceRead)
def get_workspace(
    workspace_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Any active member may read the workspace itself."""
    try:
        membership = membership_service.get_membership(db, user.id, workspace_id)
        workspace = workspace_service.get_workspace(db, workspace_id)
    except (MembershipNotFoundError, WorkspaceNotFoundError):
        raise HTTPException(status_code=404, detail="Workspace not found")
    if membership.status != MembershipStatus.ACTIVE.value:
        raise HTTPException(status_code=403, detail=f"Membership is {membership.status}")
    return workspace


@router.put("/{workspace_id}", response_model=WorkspaceRead)
def update_workspace(
    workspace_id: UUID,
    data: WorkspaceUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    authorize_workspace(db, user, workspace_id, Resource.WORKSPACE, Action.UPDATE)
    workspace = workspace_service.get_workspace(db, workspace_id)
    try:
        workspace_service.update_workspace(
            db, workspace, data.model_dump(exclude_unset=True), actor_user_id=user.id
        )
    except InvalidWorkspaceUpdateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateWorkspaceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(workspace)
    return workspace


@router.delete("/{workspace_id}")
def delete_workspace(
    workspace_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the workspace and all of its data. Owner only."""
    authorize_workspace(db, user, workspace_id, Resource.WORKSPACE, Action.DELETE)
    workspace = workspace_service.get_workspace(db, workspace_id)
    if workspace.owner_user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the workspace owner can delete it")
    workspace_service.delete_workspace(db, workspace, actor_user_id=user.id)
    db.commit()
    return {"success": True}


@router.get("/{workspace_id}/members", response_model=list[MemberRead])
def list_members(
    workspace_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    authorize_workspace(db, user, workspace_id, Resource.USERS, Action.READ)
    return membership_service.list_members(db, workspace_id)


@router.patch("/{workspace_id}/members/{member_id}", response_model=MemberRead)
def update_member(
    workspace_id: UUID,
    member_id: UUID,
    data: MemberUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change a member's role and/or status."""
    authorize_workspace(db, user, workspace_id, Resource.USERS, Action.UPDATE)
    try:
        membership = membership_service.get_membership_by_id(db, workspace_id, member_id)
    except MembershipNotFoundError:
        raise HTTPException(status_code=404, detail="Member not found")

    workspace = workspace_service.get_workspace(db, workspace_id)
    if membership.user_id == workspace.owner_user_id:
        raise HTTPException(status_code=400, detail="The workspace owner's membership cannot be changed")

    if data.role_id is not None:
        try:
            membership_service.update_role(db, membership, data.role_id, actor_user_id=user.id)
        except InvalidMembershipRoleError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if data.status is not None:
        membership_service.update_status(db, membership, data.status, actor_user_id=user.id)

    db.commit()
    db.refresh(membership)
    return membership


# =============================================================================
# Invitations
# =============================================================================

@router.get("/{workspace_id}/invites", response_model=list[MemberRead])
def list_invites(
    workspace_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    authorize_workspace(db, user, workspace_id, Resource.USERS, Action.READ)
    return invite_service.list_pending_invites(db, workspace_id)


@router.post("/{workspace_id}/invites", response_model=MemberRead, status_code=201)
def create_invite(
    workspace_id: UUID,
    data: InviteCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Invite a user by email as a pending member."""
    authorize_workspace(db, user, workspace_id, Resource.USERS, Action.CREATE)
    try:
        membership = invite_service.create_invite(
            db,
            workspace_id=workspace_id,
            email=data.email,
            invited_by=user.id,
            role_id=data.role_id,
        )
    except (InvalidMembershipRoleError, InviteLimitError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateMembershipError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(membership)
    return membership


@router.delete("/{workspace_id}/invites/{member_id}")
def cancel_invite(
    workspace_id: UUID,
    member_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    authorize_workspace(db, user, workspace_id, Resource.USERS, Action.DELETE)
    try:
        invite_service.cancel_invite(db, workspace_id, member_id, actor_user_id=user.id)
    except MembershipNotFoundError:
        raise HTTPException(status_code=404, detail="Invitation not found")
    except InviteNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    return {"success": True}


@router.post("/{workspace_id}/accept", response_model=MemberRead)
def accept_invite(
    workspace_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Accept the caller's pending invitation."""
    try:
        membership = invite_service.accept_invite(db, workspace_id, user.id)
    except MembershipNotFoundError:
        raise HTTPException(status_code=404, detail="Invitation not found")
    except InviteNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(membership)
    return membership
