"""Workspace invitations: pending memberships that the invitee accepts."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crm.db.enums import ActivityType, EntityType, MembershipStatus
from crm.db.models import Role, WorkspaceMember
from crm.services import activity_service, membership_service, role_service
from crm.services.membership_service import InvalidMembershipRoleError

logger = logging.getLogger(__name__)

MAX_PENDING_INVITES_PER_WORKSPACE = 50


class InviteServiceError(Exception):
    """Base exception for invitation errors."""

    pass


class InviteLimitError(InviteServiceError):
    pass


class InviteNotPendingError(InviteServiceError):
    """Membership exists but is not awaiting acceptance."""

    pass


def list_pending_invites(db: Session, workspace_id: UUID) -> list[WorkspaceMember]:
    return list(
        db.scalars(
            select(WorkspaceMember)
            .where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.status == MembershipStatus.PENDING.value,
            )
            .order_by(WorkspaceMember.created_at.desc())
        )
    )


def count_pending_invites(db: Session, workspace_id: UUID) -> int:
    return db.scalar(
        select(func.count(WorkspaceMember.id)).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.status == MembershipStatus.PENDING.value,
        )
    ) or 0


def create_invite(
    db: Session,
    workspace_id: UUID,
    email: str,
    invited_by: UUID,
    role_id: UUID | None = None,
) -> WorkspaceMember:
    """
    Invite a user by email as a pending member.

    Unknown emails get a user record so the invitee can sign in later.
    Without a role the workspace default role is used.

    Raises:
        InviteLimitError: Too many pending invitations
        InvalidMembershipRoleError: Role not in this workspace
        DuplicateMembershipError: User already invited or a member
    """
    # Local import: workspace_service depends on membership_service
    from crm.services.workspace_service import get_or_create_user

    if count_pending_invites(db, workspace_id) >= MAX_PENDING_INVITES_PER_WORKSPACE:
        raise InviteLimitError(
            f"Maximum of {MAX_PENDING_INVITES_PER_WORKSPACE} pending invites reached"
        )

    if role_id is not None:
        role = db.get(Role, role_id)
        if role is None or role.workspace_id != workspace_id:
            raise InvalidMembershipRoleError("Role not found in this workspace")
    else:
        role = role_service.get_default_role(db, workspace_id)

    user = get_or_create_user(db, email)
    membership = membership_service.create_membership(
        db,
        workspace_id=workspace_id,
        user_id=user.id,
        role_id=role.id if role else None,
        status=MembershipStatus.PENDING,
        invited_by=invited_by,
    )
    logger.info(
        "Workspace invite created",
        extra={"workspace_id": str(workspace_id), "membership_id": str(membership.id)},
    )
    return membership


def accept_invite(db: Session, workspace_id: UUID, user_id: UUID) -> WorkspaceMember:
    """
    Activate the caller's own pending membership.

    Raises:
        MembershipNotFoundError: No invitation for this user
        InviteNotPendingError: Membership already active, inactive or suspended
    """
    membership = membership_service.get_membership(db, user_id, workspace_id)
    if membership.status != MembershipStatus.PENDING.value:
        raise InviteNotPendingError(f"Membership is {membership.status}")
    return membership_service.update_status(
        db, membership, MembershipStatus.ACTIVE, actor_user_id=user_id
    )


def cancel_invite(
    db: Session,
    workspace_id: UUID,
    membership_id: UUID,
    actor_user_id: UUID | None = None,
) -> None:
    """
    Withdraw a pending invitation.

    Raises:
        MembershipNotFoundError: No such membership in the workspace
        InviteNotPendingError: Membership was already accepted
    """
    membership = membership_service.get_membership_by_id(db, workspace_id, membership_id)
    if membership.status != MembershipStatus.PENDING.value:
        raise InviteNotPendingError("Only pending invitations can be cancelled")

    user_id = membership.user_id
    db.delete(membership)
    db.flush()

    activity_service.log_activity(
        db=db,
        workspace_id=workspace_id,
        activity_type=ActivityType.DELETED,
        activity_sub_type="invitation_cancelled",
        entity_type=EntityType.INVITATION,
        entity_id=membership_id,
        performed_by=actor_user_id,
        description="Invitation cancelled",
        metadata={"user_id": str(user_id)},
    )
