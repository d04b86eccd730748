"""Inbound webhook ingestion: verify, transform, create a lead, log the attempt.

Pipeline for POST /webhooks/receive/{token}:

    resolve endpoint -> size check -> signature -> parse JSON -> transform
    -> persist lead -> activity (best-effort) -> WebhookLog + endpoint stats

Every attempt that resolves an active endpoint writes exactly one WebhookLog,
whatever the outcome. Unknown or inactive tokens write nothing (there is no
endpoint to attach a log to) and only produce an operational warning.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from crm.core.config import settings
from crm.core.security import verify_webhook_signature
from crm.core.structured_logging import build_log_context
from crm.db.enums import ActivityType, EntityType, WebhookEventType
from crm.db.models import WebhookEndpoint, WebhookLog, Workspace
from crm.schemas.lead import WebhookLeadData
from crm.services import activity_service, lead_service, webhook_endpoint_service
from crm.services.webhooks.registry import resolve_transformer

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("x-webhook-signature", "x-hub-signature-256")
REQUEST_ID_HEADER = "x-request-id"
REDACTED_HEADERS = {"authorization", "cookie"}

ENDPOINT_NOT_FOUND = "Webhook endpoint not found or inactive"
SUCCESS_MESSAGE = "Lead created successfully"


@dataclass
class RequestMeta:
    """HTTP details captured on the WebhookLog."""
    method: str | None = None
    url: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


@dataclass
class IngestResult:
    success: bool
    status_code: int
    lead_id: UUID | None = None
    error: str | None = None
    message: str | None = None

    def body(self) -> dict[str, Any]:
        if self.success:
            return {
                "success": True,
                "lead_id": str(self.lead_id) if self.lead_id else None,
                "message": self.message,
            }
        return {"success": False, "error": self.error}


class _Rejected(Exception):
    """Stops the pipeline with a caller-facing status and error."""

    def __init__(self, status_code: int, error: str):
        super().__init__(error)
        self.status_code = status_code
        self.error = error


def _find_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = headers.get(name)
        if value:
            return value
    return None


def _payload_snapshot(raw_body: bytes) -> Any:
    try:
        return json.loads(raw_body) if raw_body else {}
    except (ValueError, UnicodeDecodeError):
        return {"raw": raw_body[:2000].decode("utf-8", errors="replace")}


def _parse_payload(raw_body: bytes) -> dict[str, Any]:
    if not raw_body or not raw_body.strip():
        return {}
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise _Rejected(400, "Invalid JSON payload")
    if not isinstance(payload, dict):
        raise _Rejected(400, "Payload must be a JSON object")
    return payload


def _clip(value: Any, column: str) -> str | None:
    """Cut a captured request value to the width of its WebhookLog column."""
    if value is None:
        return None
    return str(value)[: WebhookLog.__table__.c[column].type.length]


def _request_id(payload: Any, headers: Mapping[str, str]) -> str | None:
    if isinstance(payload, dict) and payload.get("request_id") not in (None, ""):
        return _clip(payload["request_id"], "request_id")
    return _clip(headers.get(REQUEST_ID_HEADER), "request_id")


def _describe_errors(error: ValidationError) -> str:
    return ", ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def _check_signature(endpoint: WebhookEndpoint, headers: Mapping[str, str], raw_body: bytes) -> None:
    signature = _find_header(headers, SIGNATURE_HEADERS)
    if not signature:
        if settings.WEBHOOK_REQUIRE_SIGNATURE:
            raise _Rejected(401, "Missing webhook signature")
        return
    if not verify_webhook_signature(endpoint.secret, raw_body, signature):
        raise _Rejected(401, "Invalid webhook signature")


# =============================================================================
# Pipeline
# =============================================================================

def ingest(
    db: Session,
    token: str,
    headers: Mapping[str, str],
    raw_body: bytes,
    request_meta: RequestMeta | None = None,
) -> IngestResult:
    """
    Process one inbound delivery.

    Never raises for payload or processing problems; the outcome is carried
    in the returned IngestResult and recorded on the WebhookLog. The caller
    owns the transaction and must commit afterwards.
    """
    started = time.perf_counter()
    headers = {k.lower(): v for k, v in headers.items()}
    request_meta = request_meta or RequestMeta()

    endpoint = webhook_endpoint_service.get_active_endpoint_by_token(db, token)
    if endpoint is None:
        logger.warning(
            "Webhook delivery for unknown or inactive endpoint",
            extra={"ip_address": request_meta.ip_address},
        )
        return IngestResult(success=False, status_code=404, error=ENDPOINT_NOT_FOUND)

    log_context = build_log_context(
        workspace_id=endpoint.workspace_id,
        endpoint_id=endpoint.id,
        request_id=_clip(headers.get(REQUEST_ID_HEADER), "request_id"),
    )
    payload: Any = None
    error_message: str | None = None

    try:
        if len(raw_body) > settings.WEBHOOK_MAX_PAYLOAD_BYTES:
            raise _Rejected(413, "Payload too large")
        _check_signature(endpoint, headers, raw_body)

        payload = _parse_payload(raw_body)
        result = _create_lead(db, endpoint, payload)
    except _Rejected as rejected:
        result = IngestResult(success=False, status_code=rejected.status_code, error=rejected.error)
        error_message = rejected.error
    except Exception as e:
        logger.exception("Webhook processing failed", extra=log_context)
        result = IngestResult(success=False, status_code=500, error="Internal server error")
        error_message = str(e)

    if payload is None:
        payload = _payload_snapshot(raw_body)

    _record_attempt(
        db,
        endpoint=endpoint,
        result=result,
        payload=payload,
        headers=headers,
        request_meta=request_meta,
        error_message=error_message,
        processing_time_ms=int((time.perf_counter() - started) * 1000),
    )

    if result.success:
        logger.info("Webhook lead created", extra={**log_context, "lead_id": str(result.lead_id)})
    else:
        logger.info(
            "Webhook delivery rejected",
            extra={**log_context, "status_code": result.status_code},
        )
    return result


def _create_lead(db: Session, endpoint: WebhookEndpoint, payload: dict[str, Any]) -> IngestResult:
    """Transform the payload and persist the lead plus its activity."""
    try:
        transformer = resolve_transformer(endpoint.webhook_type, endpoint.transformation_rules)
        draft = transformer.transform(payload)
    except Exception as e:
        raise _Rejected(400, f"Data transformation failed: {e}")

    try:
        data = WebhookLeadData.model_validate(asdict(draft))
    except ValidationError as e:
        raise _Rejected(400, f"Validation failed: {_describe_errors(e)}")

    workspace = db.get(Workspace, endpoint.workspace_id)
    try:
        status = lead_service.validate_status(draft.status or workspace.default_lead_status)
    except lead_service.InvalidLeadStatusError as e:
        raise _Rejected(400, f"Validation failed: {e}")

    # Savepoint: a failed insert leaves no lead row behind
    with db.begin_nested():
        lead = lead_service.insert_lead(
            db,
            workspace_id=endpoint.workspace_id,
            name=data.name,
            email=data.email,
            phone=data.phone,
            company=data.company,
            source=data.source,
            value=data.value,
            status=status,
            tags=data.tags,
            notes=data.notes or f"Created via {endpoint.name} webhook",
            custom_fields=data.custom_fields,
            created_by=endpoint.created_by,
        )

    activity_service.log_activity(
        db=db,
        workspace_id=endpoint.workspace_id,
        activity_type=ActivityType.CREATED,
        activity_sub_type="created_via_webhook",
        entity_type=EntityType.LEAD,
        entity_id=lead.id,
        performed_by=endpoint.created_by,
        description=f"Lead '{lead.name}' created via webhook '{endpoint.name}'",
        metadata={"webhook_endpoint_id": str(endpoint.id), "source": lead.source},
    )
    return IngestResult(success=True, status_code=200, lead_id=lead.id, message=SUCCESS_MESSAGE)


def _record_attempt(
    db: Session,
    endpoint: WebhookEndpoint,
    result: IngestResult,
    payload: Any,
    headers: Mapping[str, str],
    request_meta: RequestMeta,
    error_message: str | None,
    processing_time_ms: int,
) -> WebhookLog | None:
    """Write the WebhookLog row and bump endpoint statistics."""
    log = WebhookLog(
        webhook_endpoint_id=endpoint.id,
        workspace_id=endpoint.workspace_id,
        request_id=_request_id(payload, headers),
        event_type=WebhookEventType.LEAD_CREATED.value,
        payload=payload,
        response_status=result.status_code,
        response_body=result.body(),
        error_message=error_message,
        lead_id=result.lead_id,
        method=_clip(request_meta.method, "method"),
        url=_clip(request_meta.url, "url"),
        headers={k: v for k, v in headers.items() if k not in REDACTED_HEADERS},
        user_agent=_clip(request_meta.user_agent or headers.get("user-agent"), "user_agent"),
        ip_address=_clip(request_meta.ip_address, "ip_address"),
        processing_time_ms=processing_time_ms,
    )
    endpoint.total_requests = WebhookEndpoint.total_requests + 1
    if result.success:
        endpoint.successful_requests = WebhookEndpoint.successful_requests + 1
    else:
        endpoint.failed_requests = WebhookEndpoint.failed_requests + 1
    endpoint.last_triggered_at = datetime.now(timezone.utc)

    try:
        with db.begin_nested():
            db.add(log)
            db.flush()
    except Exception:
        logger.exception(
            "Failed to write webhook log",
            extra=build_log_context(workspace_id=endpoint.workspace_id, endpoint_id=endpoint.id),
        )
        return None
    return log
