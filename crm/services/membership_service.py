"""Workspace membership registry: who belongs to which workspace, with which role."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm.db.enums import ActivityType, EntityType, MembershipStatus
from crm.db.models import Role, WorkspaceMember
from crm.services import activity_service


class MembershipServiceError(Exception):
    """Base exception for membership service errors."""

    pass


class MembershipNotFoundError(MembershipServiceError):
    """No membership for this user/workspace pair."""

    pass


class DuplicateMembershipError(MembershipServiceError):
    """User is already a member of the workspace."""

    pass


class InvalidMembershipRoleError(MembershipServiceError):
    """Role does not exist in the membership's workspace."""

    pass


def get_membership(db: Session, user_id: UUID, workspace_id: UUID) -> WorkspaceMember:
    """Get the membership for (user, workspace) or raise MembershipNotFoundError."""
    membership = db.scalar(
        select(WorkspaceMember).where(
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.workspace_id == workspace_id,
        )
    )
    if not membership:
        raise MembershipNotFoundError("Not a member of this workspace")
    return membership


def get_membership_by_id(db: Session, workspace_id: UUID, membership_id: UUID) -> WorkspaceMember:
    membership = db.scalar(
        select(WorkspaceMember).where(
            WorkspaceMember.id == membership_id,
            WorkspaceMember.workspace_id == workspace_id,
        )
    )
    if not membership:
        raise MembershipNotFoundError("Member not found")
    return membership


def list_members(db: Session, workspace_id: UUID) -> list[WorkspaceMember]:
    return list(
        db.scalars(
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.created_at)
        )
    )


def list_active_workspace_ids(db: Session, user_id: UUID) -> list[UUID]:
    """Workspace ids in which the user holds an active membership."""
    return list(
        db.scalars(
            select(WorkspaceMember.workspace_id).where(
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.status == MembershipStatus.ACTIVE.value,
            )
        )
    )


def resolve_role(db: Session, membership: WorkspaceMember) -> Role | None:
    """
    Resolve the membership's role.

    Returns None when role_id is NULL or points at a role that no longer
    exists; callers must treat that as deny.
    """
    if membership.role_id is None:
        return None
    role = db.get(Role, membership.role_id)
    if role is None or role.workspace_id != membership.workspace_id:
        return None
    return role


def create_membership(
    db: Session,
    workspace_id: UUID,
    user_id: UUID,
    role_id: UUID | None,
    status: MembershipStatus = MembershipStatus.PENDING,
    invited_by: UUID | None = None,
) -> WorkspaceMember:
    """
    Add a user to a workspace.

    The (workspace_id, user_id) pair is unique; an existing membership is
    never overwritten.

    Raises:
        DuplicateMembershipError: User already belongs to the workspace
    """
    status = MembershipStatus(status)
    membership = WorkspaceMember(
        workspace_id=workspace_id,
        user_id=user_id,
        role_id=role_id,
        status=status.value,
        invited_by=invited_by,
        joined_at=datetime.now(timezone.utc) if status == MembershipStatus.ACTIVE else None,
    )
    try:
        with db.begin_nested():
            db.add(membership)
            db.flush()
    except IntegrityError:
        raise DuplicateMembershipError("User is already a member of this workspace")

    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.CREATED,
        activity_sub_type="joined_workspace" if status == MembershipStatus.ACTIVE else "invited",
        entity_type=EntityType.MEMBER,
        entity_id=membership.id,
        performed_by=invited_by or user_id,
        description="Member added to workspace",
        metadata={"user_id": str(user_id), "role_id": str(role_id) if role_id else None, "status": status.value},
    )
    return membership


def update_status(
    db: Session,
    membership: WorkspaceMember,
    new_status: MembershipStatus,
    actor_user_id: UUID | None = None,
) -> WorkspaceMember:
    """Change membership status. Activating stamps joined_at if unset."""
    new_status = MembershipStatus(new_status)
    old_status = membership.status
    if old_status == new_status.value:
        return membership

    membership.status = new_status.value
    if new_status == MembershipStatus.ACTIVE and membership.joined_at is None:
        membership.joined_at = datetime.now(timezone.utc)
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=membership.workspace_id,
        activity_type=ActivityType.STATUS_CHANGED,
        entity_type=EntityType.MEMBER,
        entity_id=membership.id,
        performed_by=actor_user_id,
        description=f"Member status changed from {old_status} to {new_status.value}",
        metadata={"user_id": str(membership.user_id), "old_status": old_status, "new_status": new_status.value},
    )
    return membership


def update_role(
    db: Session,
    membership: WorkspaceMember,
    new_role_id: UUID,
    actor_user_id: UUID | None = None,
) -> WorkspaceMember:
    """
    Move a member to another role of the same workspace.

    Raises:
        InvalidMembershipRoleError: Role missing or owned by another workspace
    """
    role = db.get(Role, new_role_id)
    if role is None or role.workspace_id != membership.workspace_id:
        raise InvalidMembershipRoleError("Role not found in this workspace")

    old_role_id = membership.role_id
    if old_role_id == role.id:
        return membership

    membership.role_id = role.id
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=membership.workspace_id,
        activity_type=ActivityType.ROLE_CHANGED,
        entity_type=EntityType.MEMBER,
        entity_id=membership.id,
        performed_by=actor_user_id,
        description=f"Member role changed to {role.name}",
        metadata={
            "user_id": str(membership.user_id),
            "old_role_id": str(old_role_id) if old_role_id else None,
            "new_role_id": str(role.id),
        },
    )
    return membership
