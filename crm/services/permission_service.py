"""Authorization: membership status gating plus role permission checks.

A request is allowed iff the caller has an ACTIVE membership in the target
workspace and that membership's role grants (resource, action). A pending,
inactive or suspended membership is denied regardless of its role, and a
membership whose role cannot be resolved is denied by default.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from crm.core.permissions import Action, Resource, has_permission
from crm.db.enums import MembershipStatus
from crm.db.models import WorkspaceMember
from crm.services import membership_service

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Caller may not perform the action in this workspace."""

    pass


def is_allowed(
    db: Session,
    membership: WorkspaceMember | None,
    resource: Resource | str,
    action: Action | str,
) -> bool:
    if membership is None:
        return False
    if membership.status != MembershipStatus.ACTIVE.value:
        return False
    role = membership_service.resolve_role(db, membership)
    return has_permission(role, resource, action)


def authorize(
    db: Session,
    user_id: UUID,
    workspace_id: UUID,
    resource: Resource | str,
    action: Action | str,
) -> WorkspaceMember:
    """
    Authorize (resource, action) for a user in a workspace.

    Returns:
        The caller's active membership

    Raises:
        MembershipNotFoundError: User is not a member of the workspace
        AuthorizationError: Membership not active or permission missing
    """
    membership = membership_service.get_membership(db, user_id, workspace_id)
    if membership.status != MembershipStatus.ACTIVE.value:
        raise AuthorizationError(f"Membership is {membership.status}")
    if not is_allowed(db, membership, resource, action):
        logger.info(
            "Permission denied",
            extra={
                "user_id": str(user_id),
                "workspace_id": str(workspace_id),
                "permission": f"{Resource(resource).value}:{Action(action).value}",
            },
        )
        raise AuthorizationError(
            f"Missing permission: {Resource(resource).value}:{Action(action).value}"
        )
    return membership
