"""Pydantic schemas for API request/response models."""

from crm.schemas.activity import ActivityRead
from crm.schemas.auth import TokenPayload, WorkspaceContext
from crm.schemas.lead import LeadCreate, LeadRead, LeadUpdate
from crm.schemas.role import PermissionInfo, RoleCreate, RoleRead, RoleUpdate
from crm.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointCreated,
    WebhookEndpointRead,
    WebhookEndpointUpdate,
    WebhookLogRead,
)
from crm.schemas.workspace import (
    InviteCreate,
    MemberRead,
    MemberUpdate,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
)

__all__ = [
    "ActivityRead",
    "TokenPayload",
    "WorkspaceContext",
    "LeadCreate",
    "LeadRead",
    "LeadUpdate",
    "PermissionInfo",
    "RoleCreate",
    "RoleRead",
    "RoleUpdate",
    "WebhookEndpointCreate",
    "WebhookEndpointCreated",
    "WebhookEndpointRead",
    "WebhookEndpointUpdate",
    "WebhookLogRead",
    "InviteCreate",
    "MemberRead",
    "MemberUpdate",
    "WorkspaceCreate",
    "WorkspaceRead",
    "WorkspaceUpdate",
]
