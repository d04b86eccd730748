"""Permission strings, wildcard matching, and membership status gating."""

import pytest

from crm.core.permissions import (
    PERMISSION_REGISTRY,
    SYSTEM_ROLES,
    Action,
    InvalidPermissionError,
    Permission,
    Resource,
    has_permission,
    normalize_permissions,
)
from crm.db.enums import MembershipStatus
from crm.services import permission_service
from crm.services.membership_service import MembershipNotFoundError


CONCRETE_RESOURCES = [r for r in Resource if r is not Resource.ALL]
CONCRETE_ACTIONS = [a for a in Action if a is not Action.ALL]


# =============================================================================
# Parsing
# =============================================================================

def test_parse_round_trips_to_string():
    permission = Permission.parse("leads:create")
    assert permission.resource is Resource.LEADS
    assert permission.action is Action.CREATE
    assert str(permission) == "leads:create"


@pytest.mark.parametrize("value", ["lead:create", "leads:craete", "leads", "", "leads:create:extra"])
def test_parse_rejects_unknown_segments(value):
    with pytest.raises(InvalidPermissionError):
        Permission.parse(value)


def test_normalize_dedupes_and_sorts():
    assert normalize_permissions(["leads:read", "leads:*", "leads:read"]) == ["leads:*", "leads:read"]


def test_system_roles_only_use_valid_permissions():
    for role in SYSTEM_ROLES:
        assert normalize_permissions(role.permissions) == sorted(set(role.permissions))


def test_registry_keys_are_concrete_permissions():
    for key in PERMISSION_REGISTRY:
        assert not Permission.parse(key).is_wildcard


# =============================================================================
# Matching
# =============================================================================

def test_global_wildcard_grants_everything():
    for resource in CONCRETE_RESOURCES:
        for action in CONCRETE_ACTIONS:
            assert has_permission(["*:*"], resource, action)


def test_resource_wildcard_is_scoped_to_its_resource():
    perms = ["leads:*"]
    for action in CONCRETE_ACTIONS:
        assert has_permission(perms, Resource.LEADS, action)
    assert not has_permission(perms, Resource.USERS, Action.READ)


@pytest.mark.parametrize("resource", CONCRETE_RESOURCES)
@pytest.mark.parametrize("action", CONCRETE_ACTIONS)
def test_wildcards_are_monotonic(resource, action):
    """Adding a wildcard never takes a permission away."""
    base = ["leads:read", "users:update"]
    if has_permission(base, resource, action):
        assert has_permission(base + [f"{resource.value}:*"], resource, action)
        assert has_permission(base + ["*:*"], resource, action)


def test_missing_role_is_denied():
    assert not has_permission(None, Resource.LEADS, Action.READ)
    assert not has_permission([], Resource.LEADS, Action.READ)


def test_accepts_role_objects(db, workspace):
    from crm.services import role_service

    viewer = role_service.get_role_by_name(db, workspace.id, "viewer")
    assert has_permission(viewer, Resource.LEADS, Action.READ)
    assert not has_permission(viewer, Resource.LEADS, Action.CREATE)


# =============================================================================
# Authorization (membership status gating)
# =============================================================================

def test_sales_member_cannot_delete_leads(db, workspace, add_member):
    user, _ = add_member("sales")

    assert permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.CREATE)
    with pytest.raises(permission_service.AuthorizationError):
        permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.DELETE)


def test_owner_can_do_everything(db, workspace, owner):
    for resource in CONCRETE_RESOURCES:
        for action in CONCRETE_ACTIONS:
            permission_service.authorize(db, owner.id, workspace.id, resource, action)


@pytest.mark.parametrize(
    "status",
    [MembershipStatus.PENDING, MembershipStatus.INACTIVE, MembershipStatus.SUSPENDED],
)
def test_non_active_membership_denied_even_with_full_access(db, workspace, add_member, status):
    user, _ = add_member("owner", status=status)

    with pytest.raises(permission_service.AuthorizationError):
        permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.READ)


def test_non_member_raises_not_found(db, workspace, user_factory):
    stranger = user_factory("stranger")
    with pytest.raises(MembershipNotFoundError):
        permission_service.authorize(db, stranger.id, workspace.id, Resource.LEADS, Action.READ)


def test_membership_without_role_is_denied(db, workspace, add_member):
    user, membership = add_member("viewer")
    membership.role_id = None
    db.commit()

    assert not permission_service.is_allowed(db, membership, Resource.LEADS, Action.READ)
    with pytest.raises(permission_service.AuthorizationError):
        permission_service.authorize(db, user.id, workspace.id, Resource.LEADS, Action.READ)
