"""Permission model: typed ``resource:action`` permissions with wildcards.

Roles persist permissions as strings ("leads:create", "leads:*", "*:*").
Every string is parsed into a Permission when a role is written, so an
unknown resource or action is rejected instead of silently never matching.

Matching: a role permits (resource, action) iff it holds any of
"*:*", "<resource>:*" or "<resource>:<action>".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

WILDCARD = "*"


class Resource(str, Enum):
    """Permission resources. ALL is the wildcard segment."""
    ALL = WILDCARD
    LEADS = "leads"
    USERS = "users"
    ROLES = "roles"
    WORKSPACE = "workspace"
    WEBHOOKS = "webhooks"
    ACTIVITIES = "activities"
    ANALYTICS = "analytics"
    SETTINGS = "settings"


class Action(str, Enum):
    """Permission actions. ALL is the wildcard segment."""
    ALL = WILDCARD
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class InvalidPermissionError(ValueError):
    """Permission string does not name a known resource and action."""


@dataclass(frozen=True)
class Permission:
    """A single ``resource:action`` grant."""
    resource: Resource
    action: Action

    @classmethod
    def parse(cls, value: str) -> "Permission":
        """Parse "resource:action", rejecting unknown segments."""
        if not isinstance(value, str):
            raise InvalidPermissionError(f"Invalid permission: {value!r}")
        resource, sep, action = value.strip().partition(":")
        if not sep:
            raise InvalidPermissionError(f"Invalid permission: {value!r}")
        try:
            return cls(Resource(resource), Action(action))
        except ValueError:
            raise InvalidPermissionError(f"Invalid permission: {value!r}")

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @property
    def is_wildcard(self) -> bool:
        return self.resource is Resource.ALL or self.action is Action.ALL


ALL_PERMISSIONS = Permission(Resource.ALL, Action.ALL)


def candidate_permissions(resource: Resource | str, action: Action | str) -> set[str]:
    """Permission strings that would grant (resource, action)."""
    resource = Resource(resource)
    action = Action(action)
    return {
        str(ALL_PERMISSIONS),
        f"{resource.value}:{WILDCARD}",
        f"{resource.value}:{action.value}",
    }


def has_permission(role: Any, resource: Resource | str, action: Action | str) -> bool:
    """
    Check whether a role permits an action on a resource.

    ``role`` may be a Role row (anything with ``.permissions``), a plain
    collection of permission strings, or None (no role resolved -> deny).
    Membership status is not considered here; see permission_service.authorize.
    """
    if role is None:
        return False
    permissions = getattr(role, "permissions", role)
    if not permissions:
        return False
    return not candidate_permissions(resource, action).isdisjoint(permissions)


def normalize_permissions(values: Iterable[str]) -> list[str]:
    """Validate permission strings and return them de-duplicated and sorted."""
    return sorted({str(Permission.parse(value)) for value in values})


# =============================================================================
# Permission Registry
# =============================================================================

@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    label: str
    description: str
    category: str


def _def(resource: Resource, action: Action, label: str, description: str) -> PermissionDef:
    key = str(Permission(resource, action))
    return PermissionDef(key, label, description, resource.value)


PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    p.key: p
    for p in (
        # Leads
        _def(Resource.LEADS, Action.CREATE, "Create Lead", "Create new leads"),
        _def(Resource.LEADS, Action.READ, "Read Lead", "View leads"),
        _def(Resource.LEADS, Action.UPDATE, "Update Lead", "Edit lead information"),
        _def(Resource.LEADS, Action.DELETE, "Delete Lead", "Delete leads"),
        # Users
        _def(Resource.USERS, Action.CREATE, "Create User", "Invite new users"),
        _def(Resource.USERS, Action.READ, "Read User", "View user information"),
        _def(Resource.USERS, Action.UPDATE, "Update User", "Change member roles and status"),
        _def(Resource.USERS, Action.DELETE, "Delete User", "Remove users"),
        # Roles
        _def(Resource.ROLES, Action.CREATE, "Create Role", "Create custom roles"),
        _def(Resource.ROLES, Action.READ, "Read Role", "View roles"),
        _def(Resource.ROLES, Action.UPDATE, "Update Role", "Edit role permissions"),
        _def(Resource.ROLES, Action.DELETE, "Delete Role", "Delete custom roles"),
        # Workspace
        _def(Resource.WORKSPACE, Action.CREATE, "Create Workspace", "Create workspaces"),
        _def(Resource.WORKSPACE, Action.READ, "Read Workspace", "View workspace details"),
        _def(Resource.WORKSPACE, Action.UPDATE, "Update Workspace", "Edit workspace settings"),
        _def(Resource.WORKSPACE, Action.DELETE, "Delete Workspace", "Delete workspace"),
        # Webhooks
        _def(Resource.WEBHOOKS, Action.CREATE, "Create Webhook", "Create inbound webhook endpoints"),
        _def(Resource.WEBHOOKS, Action.READ, "Read Webhook", "View webhook endpoints and logs"),
        _def(Resource.WEBHOOKS, Action.UPDATE, "Update Webhook", "Edit webhook endpoints"),
        _def(Resource.WEBHOOKS, Action.DELETE, "Delete Webhook", "Deactivate webhook endpoints"),
        # Activity, analytics, settings
        _def(Resource.ACTIVITIES, Action.READ, "Read Activity", "View the workspace activity feed"),
        _def(Resource.ANALYTICS, Action.READ, "Read Analytics", "View reports and analytics"),
        _def(Resource.SETTINGS, Action.UPDATE, "Update Settings", "Modify system settings"),
    )
}


# =============================================================================
# System Roles
# =============================================================================

OWNER_ROLE = "owner"
VIEWER_ROLE = "viewer"


@dataclass(frozen=True)
class SystemRoleDef:
    name: str
    description: str
    permissions: tuple[str, ...]
    is_default: bool = False


SYSTEM_ROLES: tuple[SystemRoleDef, ...] = (
    SystemRoleDef(OWNER_ROLE, "Workspace owner with full access", ("*:*",)),
    SystemRoleDef(
        "admin",
        "Administrator with most permissions",
        (
            "leads:create", "leads:read", "leads:update", "leads:delete",
            "users:create", "users:read", "users:update", "users:delete",
            "roles:create", "roles:read", "roles:update", "roles:delete",
            "workspace:read", "workspace:update",
            "webhooks:*",
            "activities:read", "analytics:read", "settings:update",
        ),
    ),
    SystemRoleDef(
        "manager",
        "Team manager with lead and user management",
        (
            "leads:create", "leads:read", "leads:update", "leads:delete",
            "users:read", "roles:read", "webhooks:read",
            "activities:read", "analytics:read",
        ),
    ),
    SystemRoleDef(
        "sales",
        "Sales representative with lead access",
        ("leads:create", "leads:read", "leads:update", "users:read", "activities:read"),
    ),
    SystemRoleDef(
        VIEWER_ROLE,
        "Read-only access to leads and analytics",
        ("leads:read", "users:read", "activities:read", "analytics:read"),
        is_default=True,
    ),
)


# =============================================================================
# Helper Functions
# =============================================================================

def get_all_permissions() -> list[PermissionDef]:
    """Get all permissions sorted by category."""
    return sorted(PERMISSION_REGISTRY.values(), key=lambda p: (p.category, p.key))

