"""Workspace lifecycle: creation with system roles and an owner membership, updates, deletion."""

import logging
import re
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.db.enums import ActivityType, EntityType, LeadStatus, MembershipStatus
from crm.db.models import User, Workspace
from crm.services import activity_service, membership_service, role_service

logger = logging.getLogger(__name__)


class WorkspaceServiceError(Exception):
    """Base exception for workspace service errors."""

    pass


class WorkspaceNotFoundError(WorkspaceServiceError):
    pass


class DuplicateWorkspaceError(WorkspaceServiceError):
    """Workspace slug already taken."""

    pass


class InvalidWorkspaceUpdateError(WorkspaceServiceError, ValueError):
    pass


UPDATABLE_FIELDS = ("name", "slug", "default_lead_status")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:100] or "workspace"


def get_workspace(db: Session, workspace_id: UUID) -> Workspace:
    workspace = db.get(Workspace, workspace_id)
    if not workspace:
        raise WorkspaceNotFoundError("Workspace not found")
    return workspace


def list_workspaces_for_user(db: Session, user_id: UUID) -> list[Workspace]:
    """Workspaces in which the user has an active membership."""
    workspace_ids = membership_service.list_active_workspace_ids(db, user_id)
    if not workspace_ids:
        return []
    return list(
        db.scalars(
            select(Workspace).where(Workspace.id.in_(workspace_ids)).order_by(Workspace.name)
        )
    )


def create_workspace(
    db: Session,
    name: str,
    owner: User,
    slug: str | None = None,
    default_lead_status: LeadStatus = LeadStatus.NEW,
) -> Workspace:
    """
    Create a workspace with its system roles and an active owner membership.

    Raises:
        DuplicateWorkspaceError: Slug already exists
    """
    workspace = Workspace(
        name=name.strip(),
        slug=slug or slugify(name),
        default_lead_status=LeadStatus(default_lead_status).value,
        owner_user_id=owner.id,
    )
    try:
        with db.begin_nested():
            db.add(workspace)
            db.flush()
    except IntegrityError:
        raise DuplicateWorkspaceError(f"Workspace slug '{workspace.slug}' already exists")

    role_service.seed_system_roles(db, workspace.id)
    owner_role = role_service.get_owner_role(db, workspace.id)
    membership_service.create_membership(
        db,
        workspace_id=workspace.id,
        user_id=owner.id,
        role_id=owner_role.id if owner_role else None,
        status=MembershipStatus.ACTIVE,
    )

    activity_service.log_activity(
        db=db,
        workspace_id=workspace.id,
        activity_type=ActivityType.CREATED,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.id,
        performed_by=owner.id,
        description=f"Workspace '{workspace.name}' created",
        metadata={"slug": workspace.slug},
    )
    return workspace


def update_workspace(
    db: Session,
    workspace: Workspace,
    fields: dict,
    actor_user_id: UUID | None = None,
) -> Workspace:
    """
    Rename a workspace, change its slug or its default lead status.

    Raises:
        InvalidWorkspaceUpdateError: A field is set to null
        DuplicateWorkspaceError: Slug already exists
    """
    cleared = sorted(f for f in UPDATABLE_FIELDS if f in fields and fields[f] is None)
    if cleared:
        raise InvalidWorkspaceUpdateError(f"Fields cannot be null: {', '.join(cleared)}")

    changes: dict[str, dict] = {}
    for field in UPDATABLE_FIELDS:
        if field not in fields:
            continue
        value = fields[field]
        if field == "name":
            value = value.strip()
        elif field == "default_lead_status":
            value = LeadStatus(value).value
        old_value = getattr(workspace, field)
        if old_value != value:
            changes[field] = {"old": old_value, "new": value}

    if not changes:
        return workspace

    try:
        with db.begin_nested():
            for field, change in changes.items():
                setattr(workspace, field, change["new"])
            db.flush()
    except IntegrityError:
        raise DuplicateWorkspaceError(f"Workspace slug '{fields['slug']}' already exists")

    activity_service.log_activity(
        db=db,
        workspace_id=workspace.id,
        activity_type=ActivityType.UPDATED,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.id,
        performed_by=actor_user_id,
        description=f"Workspace '{workspace.name}' updated",
        metadata={"changes": changes},
    )
    return workspace


def delete_workspace(db: Session, workspace: Workspace, actor_user_id: UUID | None = None) -> None:
    """
    Delete a workspace and everything scoped to it.

    Roles and memberships go through the ORM cascade; leads, webhook
    endpoints, logs and activities through ON DELETE CASCADE.
    """
    workspace_id, slug = workspace.id, workspace.slug
    db.delete(workspace)
    db.flush()
    logger.info(
        "Workspace deleted",
        extra={"workspace_id": str(workspace_id), "slug": slug, "user_id": str(actor_user_id)},
    )


def get_or_create_user(db: Session, email: str, display_name: str | None = None) -> User:
    """Find a user by email, creating it when missing."""
    email = email.strip().lower()
    user = db.scalar(select(User).where(User.email == email))
    if user:
        return user
    user = User(email=email, display_name=display_name or email.split("@")[0])
    db.add(user)
    db.flush()
    return user
