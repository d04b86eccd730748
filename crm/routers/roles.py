"""Roles API endpoints - custom roles per workspace."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from crm.core.deps import authorize_workspace, get_current_user, get_db, require_permission
from crm.core.permissions import Action, InvalidPermissionError, Resource
from crm.db.models import Role
from crm.schemas.auth import WorkspaceContext
from crm.schemas.role import RoleCreate, RoleRead, RoleUpdate
from crm.services import role_service
from crm.services.role_service import DuplicateRoleError, ProtectedRoleError, RoleNotFoundError

router = APIRouter(prefix="/roles", tags=["Roles"])


def _load_role(db: Session, user, role_id: UUID, action: Action) -> Role:
    try:
        role = role_service.get_role(db, role_id)
    except RoleNotFoundError:
        raise HTTPException(status_code=404, detail="Role not found")
    authorize_workspace(db, user, role.workspace_id, Resource.ROLES, action)
    return role


@router.get("", response_model=list[RoleRead])
def list_roles(
    ctx: WorkspaceContext = Depends(require_permission(Resource.ROLES, Action.READ)),
    db: Session = Depends(get_db),
):
    return role_service.list_roles(db, ctx.workspace_id)


@router.post("", response_model=RoleRead, status_code=201)
def create_role(
    data: RoleCreate,
    ctx: WorkspaceContext = Depends(require_permission(Resource.ROLES, Action.CREATE)),
    db: Session = Depends(get_db),
):
    try:
        role = role_service.create_role(
            db,
            workspace_id=ctx.workspace_id,
            name=data.name,
            permissions=data.permissions,
            description=data.description,
            is_default=data.is_default,
            actor_user_id=ctx.user_id,
        )
    except InvalidPermissionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateRoleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(role)
    return role


@router.put("/{role_id}", response_model=RoleRead)
def update_role(
    role_id: UUID,
    data: RoleUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    role = _load_role(db, user, role_id, Action.UPDATE)
    try:
        role_service.update_role(
            db,
            role,
            name=data.name,
            description=data.description,
            permissions=data.permissions,
            is_default=data.is_default,
            actor_user_id=user.id,
        )
    except InvalidPermissionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ProtectedRoleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateRoleError as e:
        raise HTTPException(status_code=409, detail=str(e))
    db.commit()
    db.refresh(role)
    return role


@router.delete("/{role_id}")
def delete_role(
    role_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a custom role; its members fall back to the default role."""
    role = _load_role(db, user, role_id, Action.DELETE)
    try:
        reassigned = role_service.delete_role(db, role, actor_user_id=user.id)
    except ProtectedRoleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return {"success": True, "reassigned_members": reassigned}
