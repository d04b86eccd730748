"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from crm.core.permissions import Action, Resource
from crm.core.security import decode_access_token
from crm.db.session import SessionLocal

AUTH_HEADER = "Authorization"
BEARER_PREFIX = "bearer "


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from the bearer token.

    Validates:
    - Authorization header carries a Bearer token
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        HTTPException 401: Authentication failed
    """
    from crm.db.models import User

    header = request.headers.get(AUTH_HEADER, "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = header[len(BEARER_PREFIX):].strip()

    try:
        payload = decode_access_token(token)
        user_id = UUID(str(payload["sub"]))
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Token revoked")

    return user


def authorize_workspace(
    db: Session,
    user,
    workspace_id: UUID,
    resource: Resource,
    action: Action,
):
    """
    Check (resource, action) for the user in a workspace.

    Non-members get 404 so workspace ids do not leak across tenants.

    Raises:
        HTTPException 404: Not a member of the workspace
        HTTPException 403: Membership not active or permission missing
    """
    from crm.schemas.auth import WorkspaceContext
    from crm.services import permission_service
    from crm.services.membership_service import MembershipNotFoundError

    try:
        membership = permission_service.authorize(db, user.id, workspace_id, resource, action)
    except MembershipNotFoundError:
        raise HTTPException(status_code=404, detail="Workspace not found")
    except permission_service.AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))

    return WorkspaceContext(
        user_id=user.id,
        workspace_id=workspace_id,
        membership_id=membership.id,
        role_id=membership.role_id,
        email=user.email,
    )


def require_permission(resource: Resource, action: Action):
    """
    Dependency factory for permission-based authorization.

    The workspace comes from the ``workspace_id`` query parameter.

    Usage:
        @router.get("/leads")
        def list_leads(ctx = Depends(require_permission(Resource.LEADS, Action.READ))): ...
    """
    def dependency(
        workspace_id: UUID = Query(...),
        user=Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        return authorize_workspace(db, user, workspace_id, resource, action)
    return dependency
