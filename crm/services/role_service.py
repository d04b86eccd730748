"""Role registry: system role seeding and custom role CRUD per workspace."""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.core.permissions import (
    OWNER_ROLE, SYSTEM_ROLES, VIEWER_ROLE, normalize_permissions,
)
from crm.db.enums import ActivityType, EntityType
from crm.db.models import Role, WorkspaceMember
from crm.services import activity_service

logger = logging.getLogger(__name__)

# Attempts at "<name> (<n>)" before giving up on a conflicting role name
MAX_NAME_ATTEMPTS = 5


class RoleServiceError(Exception):
    """Base exception for role service errors."""

    pass


class RoleNotFoundError(RoleServiceError):
    """Role not found in workspace."""

    pass


class DuplicateRoleError(RoleServiceError):
    """Role name already exists in workspace."""

    pass


class ProtectedRoleError(RoleServiceError):
    """System roles cannot be deleted or renamed."""

    pass


# =============================================================================
# System Roles
# =============================================================================

def _fallback_name(name: str, attempt: int) -> str:
    return name if attempt == 1 else f"{name} ({attempt})"


def _system_name_clause(name: str):
    """SQL match for a system role seeded as ``name`` or a fallback of it."""
    return or_(Role.name == name, Role.name.startswith(f"{name} ("))


def is_owner_role(role: Role | None) -> bool:
    """True for the seeded owner role, including a fallback-named one."""
    if role is None or not role.is_system:
        return False
    return role.name == OWNER_ROLE or role.name.startswith(f"{OWNER_ROLE} (")


def _insert_role(db: Session, role: Role) -> bool:
    """Insert in a savepoint; False on a unique-name conflict."""
    try:
        with db.begin_nested():
            db.add(role)
            db.flush()
    except IntegrityError:
        return False
    return True


def seed_system_roles(db: Session, workspace_id: UUID) -> list[Role]:
    """
    Create the system roles for a workspace.

    Existing system roles are kept as-is. When a custom role already holds a
    system role's name, the system role is created as "<name> (2)",
    "<name> (3)", ... up to MAX_NAME_ATTEMPTS.
    """
    existing = {
        r.name: r
        for r in db.scalars(select(Role).where(Role.workspace_id == workspace_id))
    }
    seeded: list[Role] = []
    for definition in SYSTEM_ROLES:
        current = existing.get(definition.name)
        if current is not None and current.is_system:
            seeded.append(current)
            continue

        for attempt in range(1, MAX_NAME_ATTEMPTS + 1):
            name = _fallback_name(definition.name, attempt)
            role = Role(
                workspace_id=workspace_id,
                name=name,
                description=definition.description,
                permissions=list(definition.permissions),
                is_default=definition.is_default,
                is_system=True,
            )
            if _insert_role(db, role):
                seeded.append(role)
                break
            logger.warning(
                "Role name conflict while seeding system roles",
                extra={"workspace_id": str(workspace_id), "role_name": name},
            )
        else:
            raise DuplicateRoleError(
                f"Could not create system role '{definition.name}' after {MAX_NAME_ATTEMPTS} attempts"
            )
    return seeded


def get_role_by_name(db: Session, workspace_id: UUID, name: str) -> Role | None:
    return db.scalar(
        select(Role).where(Role.workspace_id == workspace_id, Role.name == name)
    )


def get_owner_role(db: Session, workspace_id: UUID) -> Role | None:
    return db.scalar(
        select(Role).where(
            Role.workspace_id == workspace_id,
            Role.is_system.is_(True),
            _system_name_clause(OWNER_ROLE),
        ).order_by(Role.created_at)
    )


def get_default_role(db: Session, workspace_id: UUID, exclude_id: UUID | None = None) -> Role | None:
    """Workspace default role, falling back to the viewer role."""
    query = select(Role).where(Role.workspace_id == workspace_id)
    if exclude_id is not None:
        query = query.where(Role.id != exclude_id)
    default = db.scalar(query.where(Role.is_default.is_(True)))
    if default:
        return default
    return db.scalar(query.where(Role.name == VIEWER_ROLE))


# =============================================================================
# Role CRUD
# =============================================================================

def list_roles(db: Session, workspace_id: UUID) -> list[Role]:
    return list(
        db.scalars(
            select(Role)
            .where(Role.workspace_id == workspace_id)
            .order_by(Role.is_system.desc(), Role.name)
        )
    )


def get_role(db: Session, role_id: UUID, workspace_id: UUID | None = None) -> Role:
    role = db.get(Role, role_id)
    if not role or (workspace_id is not None and role.workspace_id != workspace_id):
        raise RoleNotFoundError("Role not found")
    return role


def _clear_default(db: Session, workspace_id: UUID, keep_id: UUID | None) -> None:
    stmt = update(Role).where(Role.workspace_id == workspace_id, Role.is_default.is_(True))
    if keep_id is not None:
        stmt = stmt.where(Role.id != keep_id)
    db.execute(stmt.values(is_default=False))


def create_role(
    db: Session,
    workspace_id: UUID,
    name: str,
    permissions: Iterable[str],
    description: str | None = None,
    is_default: bool = False,
    actor_user_id: UUID | None = None,
) -> Role:
    """
    Create a custom role.

    Raises:
        InvalidPermissionError: A permission string is not a known resource:action
        DuplicateRoleError: Name already used in this workspace
    """
    role = Role(
        workspace_id=workspace_id,
        name=name.strip(),
        description=description,
        permissions=normalize_permissions(permissions),
        is_default=is_default,
        is_system=False,
    )
    if not _insert_role(db, role):
        raise DuplicateRoleError(f"Role '{role.name}' already exists in this workspace")
    if is_default:
        _clear_default(db, workspace_id, keep_id=role.id)

    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.CREATED,
        entity_type=EntityType.ROLE,
        entity_id=role.id,
        performed_by=actor_user_id,
        description=f"Role '{role.name}' created",
        metadata={"permissions": role.permissions},
    )
    return role


def update_role(
    db: Session,
    role: Role,
    name: str | None = None,
    description: str | None = None,
    permissions: Iterable[str] | None = None,
    is_default: bool | None = None,
    actor_user_id: UUID | None = None,
) -> Role:
    """
    Update a role's name, description, permissions or default flag.

    System roles keep their name, and the owner role keeps full access.
    """
    changes: dict = {}

    if name is not None and name.strip() != role.name:
        if role.is_system:
            raise ProtectedRoleError("System roles cannot be renamed")
        if get_role_by_name(db, role.workspace_id, name.strip()):
            raise DuplicateRoleError(f"Role '{name.strip()}' already exists in this workspace")
        changes["name"] = {"old": role.name, "new": name.strip()}
        role.name = name.strip()

    if description is not None and description != role.description:
        changes["description"] = {"old": role.description, "new": description}
        role.description = description

    if permissions is not None:
        normalized = normalize_permissions(permissions)
        if normalized != sorted(role.permissions or []):
            if is_owner_role(role):
                raise ProtectedRoleError("Owner role permissions cannot be changed")
            changes["permissions"] = {"old": role.permissions, "new": normalized}
            role.permissions = normalized

    if is_default is not None and is_default != role.is_default:
        changes["is_default"] = {"old": role.is_default, "new": is_default}
        role.is_default = is_default
        if is_default:
            _clear_default(db, role.workspace_id, keep_id=role.id)

    if not changes:
        return role

    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=role.workspace_id,
        activity_type=ActivityType.UPDATED,
        entity_type=EntityType.ROLE,
        entity_id=role.id,
        performed_by=actor_user_id,
        description=f"Role '{role.name}' updated",
        metadata={"changes": changes},
    )
    return role


def delete_role(db: Session, role: Role, actor_user_id: UUID | None = None) -> int:
    """
    Delete a custom role.

    Members holding the role move to the workspace default role (or viewer).

    Returns:
        Number of memberships reassigned
    """
    if role.is_system:
        raise ProtectedRoleError("System roles cannot be deleted")

    fallback = get_default_role(db, role.workspace_id, exclude_id=role.id)
    result = db.execute(
        update(WorkspaceMember)
        .where(WorkspaceMember.role_id == role.id)
        .values(role_id=fallback.id if fallback else None)
    )
    reassigned = result.rowcount or 0

    role_id, role_name, workspace_id = role.id, role.name, role.workspace_id
    db.delete(role)
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.DELETED,
        entity_type=EntityType.ROLE,
        entity_id=role_id,
        performed_by=actor_user_id,
        description=f"Role '{role_name}' deleted",
        metadata={
            "reassigned_members": reassigned,
            "fallback_role_id": str(fallback.id) if fallback else None,
        },
    )
    return reassigned
