"""Permissions router - the permission catalog used to build roles."""

from fastapi import APIRouter, Depends

from crm.core.deps import get_current_user
from crm.core.permissions import get_all_permissions
from crm.schemas.role import PermissionInfo

router = APIRouter(prefix="/permissions", tags=["Permissions"])


@router.get("", response_model=list[PermissionInfo])
def list_permissions(user=Depends(get_current_user)):
    """Every concrete resource:action permission, grouped by category."""
    return [
        PermissionInfo(key=p.key, label=p.label, description=p.description, category=p.category)
        for p in get_all_permissions()
    ]
