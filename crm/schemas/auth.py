"""Authentication and workspace context schemas."""

from uuid import UUID

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    token_version: int


class WorkspaceContext(BaseModel):
    """
    Authorized request context inside one workspace.

    Returned by require_permission once the caller's active membership and
    role permission have been checked.
    """
    user_id: UUID
    workspace_id: UUID
    membership_id: UUID
    role_id: UUID | None
    email: str
