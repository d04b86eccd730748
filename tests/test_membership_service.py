"""Membership registry: uniqueness, status and role transitions."""

import pytest
from sqlalchemy import select

from crm.core.permissions import Action, Resource
from crm.db.enums import ActivityType, EntityType, MembershipStatus
from crm.db.models import Activity
from crm.services import membership_service, permission_service, role_service
from crm.services.membership_service import (
    DuplicateMembershipError,
    InvalidMembershipRoleError,
    MembershipNotFoundError,
)


def _member_activities(db, membership_id):
    return list(
        db.scalars(
            select(Activity).where(
                Activity.entity_type == EntityType.MEMBER.value,
                Activity.entity_id == membership_id,
            )
        )
    )


def test_owner_membership_is_active(db, workspace, owner):
    membership = membership_service.get_membership(db, owner.id, workspace.id)
    assert membership.status == MembershipStatus.ACTIVE.value
    assert membership.joined_at is not None


def test_get_membership_not_found(db, workspace, user_factory):
    with pytest.raises(MembershipNotFoundError):
        membership_service.get_membership(db, user_factory().id, workspace.id)


def test_duplicate_membership_rejected_and_not_overwritten(db, workspace, add_member):
    user, membership = add_member("sales")
    viewer = role_service.get_role_by_name(db, workspace.id, "viewer")

    with pytest.raises(DuplicateMembershipError):
        membership_service.create_membership(db, workspace.id, user.id, viewer.id)
    db.commit()

    current = membership_service.get_membership(db, user.id, workspace.id)
    assert current.id == membership.id
    assert current.role_id == role_service.get_role_by_name(db, workspace.id, "sales").id


def test_pending_member_cannot_act_until_activated(db, workspace, owner, add_member):
    user, membership = add_member("sales", status=MembershipStatus.PENDING)
    assert membership.joined_at is None

    with pytest.raises(permission_service.AuthorizationError):
        permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.READ)

    membership_service.update_status(db, membership, MembershipStatus.ACTIVE, actor_user_id=owner.id)
    db.commit()

    assert membership.joined_at is not None
    permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.READ)


def test_status_change_records_old_and_new(db, workspace, owner, add_member):
    _, membership = add_member("viewer")

    membership_service.update_status(db, membership, MembershipStatus.SUSPENDED, actor_user_id=owner.id)
    db.commit()

    changes = [
        a for a in _member_activities(db, membership.id)
        if a.activity_type == ActivityType.STATUS_CHANGED.value
    ]
    assert len(changes) == 1
    assert changes[0].details["old_status"] == "active"
    assert changes[0].details["new_status"] == "suspended"
    assert changes[0].performed_by == owner.id


def test_role_change_records_old_and_new(db, workspace, owner, add_member):
    _, membership = add_member("viewer")
    viewer = role_service.get_role_by_name(db, workspace.id, "viewer")
    manager = role_service.get_role_by_name(db, workspace.id, "manager")

    membership_service.update_role(db, membership, manager.id, actor_user_id=owner.id)
    db.commit()

    changes = [
        a for a in _member_activities(db, membership.id)
        if a.activity_type == ActivityType.ROLE_CHANGED.value
    ]
    assert len(changes) == 1
    assert changes[0].details["old_role_id"] == str(viewer.id)
    assert changes[0].details["new_role_id"] == str(manager.id)


def test_role_from_other_workspace_rejected(db, workspace, owner, add_member):
    from crm.services import workspace_service

    _, membership = add_member("viewer")
    other = workspace_service.create_workspace(db, "Other", owner=owner, slug="other-ws")
    foreign_admin = role_service.get_role_by_name(db, other.id, "admin")

    with pytest.raises(InvalidMembershipRoleError):
        membership_service.update_role(db, membership, foreign_admin.id)


def test_resolve_role_tolerates_missing_role(db, workspace, add_member):
    _, membership = add_member("viewer")
    membership.role_id = None
    db.commit()

    assert membership_service.resolve_role(db, membership) is None
