"""Webhooks router - endpoint management and inbound lead delivery."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from crm.core.config import settings
from crm.core.deps import authorize_workspace, get_current_user, get_db, require_permission
from crm.core.permissions import Action, Resource
from crm.core.rate_limit import limiter, webhook_rate_limit
from crm.db.models import WebhookEndpoint
from crm.schemas.auth import WorkspaceContext
from crm.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointCreated,
    WebhookEndpointRead,
    WebhookEndpointUpdate,
    WebhookLogRead,
)
from crm.services import webhook_endpoint_service, webhook_ingest_service
from crm.services.webhook_endpoint_service import (
    InvalidWebhookConfigError,
    WebhookEndpointNotFoundError,
)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)


def _load_endpoint(
    db: Session,
    user,
    endpoint_id: UUID,
    action: Action,
) -> WebhookEndpoint:
    """Fetch an endpoint and authorize the caller on its workspace."""
    try:
        endpoint = webhook_endpoint_service.get_endpoint(db, endpoint_id)
    except WebhookEndpointNotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found")
    authorize_workspace(db, user, endpoint.workspace_id, Resource.WEBHOOKS, action)
    return endpoint


# =============================================================================
# Endpoint Management
# =============================================================================

@router.post("", response_model=WebhookEndpointCreated, status_code=201)
def create_webhook(
    data: WebhookEndpointCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create an inbound endpoint. The secret is only returned here."""
    authorize_workspace(db, user, data.workspace_id, Resource.WEBHOOKS, Action.CREATE)
    try:
        endpoint = webhook_endpoint_service.create_endpoint(
            db,
            workspace_id=data.workspace_id,
            name=data.name,
            created_by=user.id,
            events=[e.value for e in data.events] if data.events is not None else None,
            webhook_type=data.webhook_type,
            transformation_rules=data.transformation_rules,
        )
    except InvalidWebhookConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(endpoint)
    return endpoint


@router.get("", response_model=list[WebhookEndpointRead])
def list_webhooks(
    ctx: WorkspaceContext = Depends(require_permission(Resource.WEBHOOKS, Action.READ)),
    db: Session = Depends(get_db),
):
    return webhook_endpoint_service.list_endpoints(db, ctx.workspace_id)


@router.get("/{endpoint_id}", response_model=WebhookEndpointRead)
def get_webhook(
    endpoint_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _load_endpoint(db, user, endpoint_id, Action.READ)


@router.put("/{endpoint_id}", response_model=WebhookEndpointRead)
def update_webhook(
    endpoint_id: UUID,
    data: WebhookEndpointUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    endpoint = _load_endpoint(db, user, endpoint_id, Action.UPDATE)
    fields = data.model_dump(exclude_unset=True, mode="json")
    try:
        webhook_endpoint_service.update_endpoint(db, endpoint, fields, actor_user_id=user.id)
    except InvalidWebhookConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(endpoint)
    return endpoint


@router.delete("/{endpoint_id}")
def deactivate_webhook(
    endpoint_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deactivate an endpoint. Delivery logs are kept."""
    endpoint = _load_endpoint(db, user, endpoint_id, Action.DELETE)
    webhook_endpoint_service.deactivate(db, endpoint, actor_user_id=user.id)
    db.commit()
    return {"success": True}


@router.get("/{endpoint_id}/logs", response_model=list[WebhookLogRead])
def list_webhook_logs(
    endpoint_id: UUID,
    limit: int = Query(50, ge=1, le=settings.WEBHOOK_LOG_MAX_LIMIT),
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    endpoint = _load_endpoint(db, user, endpoint_id, Action.READ)
    return webhook_endpoint_service.list_logs(db, endpoint.id, limit)


# =============================================================================
# Inbound Delivery (public, token-addressed)
# =============================================================================

def _ingest_and_commit(
    db: Session,
    token: str,
    headers: dict[str, str],
    body: bytes,
    request_meta: webhook_ingest_service.RequestMeta,
) -> webhook_ingest_service.IngestResult:
    result = webhook_ingest_service.ingest(db, token, headers, body, request_meta)
    db.commit()
    return result


@router.post("/receive/{token}")
@limiter.limit(webhook_rate_limit)
async def receive_webhook(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Receive a lead from an external system.

    Security:
    - Endpoint resolved by its unguessable URL token
    - Optional HMAC-SHA256 signature (X-Webhook-Signature: sha256=<hex>)
    - Payload size limit and per-IP rate limit
    """
    body = await request.body()
    request_meta = webhook_ingest_service.RequestMeta(
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("user-agent"),
        ip_address=(
            request.headers.get("x-forwarded-for", "").split(",")[0].strip()
            or (request.client.host if request.client else None)
        ),
    )
    result = await run_in_threadpool(
        _ingest_and_commit, db, token, dict(request.headers), body, request_meta
    )
    return JSONResponse(status_code=result.status_code, content=result.body())


@router.get("/receive/{token}")
def describe_webhook(token: str, db: Session = Depends(get_db)):
    """Describe the payload an active endpoint expects."""
    endpoint = webhook_endpoint_service.get_active_endpoint_by_token(db, token)
    if endpoint is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": webhook_ingest_service.ENDPOINT_NOT_FOUND},
        )
    return {
        "name": endpoint.name,
        "webhook_type": endpoint.webhook_type,
        "method": "POST",
        "content_type": "application/json",
        "signature_header": "X-Webhook-Signature",
        "signature_format": "sha256=<hex HMAC-SHA256 of the raw body>",
        "signature_required": settings.WEBHOOK_REQUIRE_SIGNATURE,
        "fields": {
            "name": "Full name (or first_name + last_name, or full_name)",
            "email": "Email address",
            "phone": "Phone number",
            "company": "Company name",
            "source": "Lead source (default: webhook)",
            "value": "Numeric deal value (default: 0)",
            "status": "Lead status (default: workspace default)",
            "custom_fields": "Object of extra attributes",
        },
        "example": {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "+1 555 0100",
            "company": "Acme",
            "value": 1500,
        },
        "uses_custom_rules": bool(endpoint.transformation_rules),
    }
