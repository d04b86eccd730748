"""Ingestion pipeline: one log per attempt, signatures, failures."""

import json

import pytest
from sqlalchemy import func, select

from crm.core.config import settings
from crm.core.security import compute_webhook_signature
from crm.db.enums import ActivityType, EntityType
from crm.db.models import Activity, Lead, WebhookLog
from crm.services import lead_service, webhook_endpoint_service, webhook_ingest_service


@pytest.fixture
def endpoint(db, workspace, owner):
    endpoint = webhook_endpoint_service.create_endpoint(
        db, workspace_id=workspace.id, name="Site form", created_by=owner.id
    )
    db.commit()
    return endpoint


def _ingest(db, endpoint, payload, headers=None):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    result = webhook_ingest_service.ingest(db, endpoint.token, headers or {}, raw)
    db.commit()
    return result


def _count(db, model, **filters):
    query = select(func.count()).select_from(model)
    for key, value in filters.items():
        query = query.where(getattr(model, key) == value)
    return db.scalar(query)


def test_valid_payload_creates_lead_log_and_activity(db, workspace, owner, endpoint):
    result = _ingest(db, endpoint, {"name": "Jane Doe", "email": "jane@example.com", "value": 1500})

    assert result.success
    assert result.status_code == 200
    assert result.message == "Lead created successfully"

    lead = db.get(Lead, result.lead_id)
    assert lead.workspace_id == workspace.id
    assert lead.name == "Jane Doe"
    assert lead.source == "webhook"
    assert lead.value == 1500
    assert lead.status == workspace.default_lead_status
    assert lead.created_by == owner.id

    log = db.scalar(select(WebhookLog).where(WebhookLog.webhook_endpoint_id == endpoint.id))
    assert log.response_status == 200
    assert log.lead_id == lead.id
    assert log.event_type == "lead.created"
    assert log.payload["email"] == "jane@example.com"
    assert log.error_message is None

    activity = db.scalar(
        select(Activity).where(
            Activity.entity_type == EntityType.LEAD.value, Activity.entity_id == lead.id
        )
    )
    assert activity.activity_type == ActivityType.CREATED.value
    assert activity.activity_sub_type == "created_via_webhook"
    assert activity.details == {"webhook_endpoint_id": str(endpoint.id), "source": "webhook"}


def test_name_falls_back_to_unknown(db, endpoint):
    result = _ingest(db, endpoint, {"email": "x@example.com"})
    assert db.get(Lead, result.lead_id).name == "Unknown"


def test_endpoint_statistics_updated(db, endpoint):
    _ingest(db, endpoint, {"name": "A"})
    _ingest(db, endpoint, b"{not json")
    db.refresh(endpoint)

    assert endpoint.total_requests == 2
    assert endpoint.successful_requests == 1
    assert endpoint.failed_requests == 1
    assert endpoint.last_triggered_at is not None


def test_request_id_from_payload_or_header(db, endpoint):
    _ingest(db, endpoint, {"name": "A", "request_id": "req-1"})
    _ingest(db, endpoint, {"name": "B"}, headers={"X-Request-ID": "req-2"})

    ids = set(db.scalars(select(WebhookLog.request_id)))
    assert ids == {"req-1", "req-2"}


# =============================================================================
# One log per attempt
# =============================================================================

@pytest.mark.parametrize(
    "body, headers, status",
    [
        (b'{"name": "ok"}', {}, 200),
        (b"{broken", {}, 400),
        (b"[1, 2]", {}, 400),
        (b'{"name": "x", "status": "won"}', {}, 400),
        (b'{"name": "x"}', {"X-Webhook-Signature": "sha256=deadbeef"}, 401),
    ],
)
def test_exactly_one_log_per_attempt(db, endpoint, body, headers, status):
    result = _ingest(db, endpoint, body, headers)

    assert result.status_code == status
    assert _count(db, WebhookLog, webhook_endpoint_id=endpoint.id) == 1
    log = db.scalar(select(WebhookLog))
    assert log.response_status == status
    assert _count(db, Lead) == (1 if status == 200 else 0)


def test_invalid_status_is_validation_error(db, endpoint):
    result = _ingest(db, endpoint, {"name": "x", "status": "won"})
    assert result.error.startswith("Validation failed")


def test_oversized_payload_rejected(db, endpoint, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_MAX_PAYLOAD_BYTES", 10)
    result = _ingest(db, endpoint, {"name": "A very long payload"})

    assert result.status_code == 413
    assert _count(db, WebhookLog) == 1
    assert _count(db, Lead) == 0


def test_transformation_failure_is_logged(db, workspace, owner):
    endpoint = webhook_endpoint_service.create_endpoint(
        db, workspace_id=workspace.id, name="Broken", created_by=owner.id
    )
    endpoint.transformation_rules = {"name": {"path": "a", "transform": "reverse"}}
    db.commit()

    result = _ingest(db, endpoint, {"a": "x"})

    assert result.status_code == 400
    assert result.error.startswith("Data transformation failed")
    log = db.scalar(select(WebhookLog))
    assert log.error_message.startswith("Data transformation failed")


def test_persistence_failure_logs_verbatim_message(db, endpoint, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(lead_service, "insert_lead", boom)
    result = _ingest(db, endpoint, {"name": "Jane"})

    assert result.status_code == 500
    assert result.body() == {"success": False, "error": "Internal server error"}
    log = db.scalar(select(WebhookLog))
    assert log.response_status == 500
    assert log.error_message == "disk on fire"
    assert _count(db, Lead) == 0


# =============================================================================
# Signatures
# =============================================================================

def test_valid_signature_accepted(db, endpoint):
    body = json.dumps({"name": "Signed"}).encode()
    signature = compute_webhook_signature(endpoint.secret, body)

    result = _ingest(db, endpoint, body, {"X-Webhook-Signature": signature})
    assert result.success


def test_hub_signature_header_accepted(db, endpoint):
    body = json.dumps({"name": "Signed"}).encode()
    signature = compute_webhook_signature(endpoint.secret, body)

    result = _ingest(db, endpoint, body, {"X-Hub-Signature-256": signature})
    assert result.success


def test_bad_signature_rejected_without_lead(db, endpoint):
    body = json.dumps({"name": "Forged"}).encode()
    signature = compute_webhook_signature("not-the-secret", body)

    result = _ingest(db, endpoint, body, {"X-Webhook-Signature": signature})

    assert result.status_code == 401
    assert _count(db, Lead) == 0
    assert db.scalar(select(WebhookLog)).response_status == 401


def test_missing_signature_rejected_when_required(db, endpoint, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_REQUIRE_SIGNATURE", True)
    result = _ingest(db, endpoint, {"name": "Unsigned"})

    assert result.status_code == 401
    assert result.error == "Missing webhook signature"


# =============================================================================
# Unknown / inactive endpoints
# =============================================================================

def test_unknown_token_writes_nothing(db, endpoint):
    result = webhook_ingest_service.ingest(db, "0" * 32, {}, b'{"name": "x"}')

    assert result.status_code == 404
    assert result.error == "Webhook endpoint not found or inactive"
    assert _count(db, WebhookLog) == 0
    assert _count(db, Lead) == 0


def test_inactive_endpoint_never_creates_leads(db, endpoint):
    webhook_endpoint_service.deactivate(db, endpoint)
    db.commit()

    for payload in ({"name": "A"}, {"name": "B", "email": "b@example.com"}):
        result = _ingest(db, endpoint, payload)
        assert result.status_code == 404

    assert _count(db, Lead) == 0
    assert _count(db, WebhookLog) == 0


# =============================================================================
# Column limits
# =============================================================================

def test_request_metadata_clipped_to_column_widths(db, endpoint):
    meta = webhook_ingest_service.RequestMeta(
        method="POST",
        url="http://test/" + "p" * 1200,
        user_agent="u" * 600,
        ip_address="i" * 100,
    )
    result = webhook_ingest_service.ingest(
        db, endpoint.token, {"X-Request-ID": "r" * 300}, b'{"name": "Jane"}', meta
    )
    db.commit()

    assert result.success
    assert _count(db, WebhookLog) == 1
    log = db.scalar(select(WebhookLog))
    assert len(log.request_id) == 255
    assert len(log.user_agent) == 500
    assert len(log.ip_address) == 64
    assert len(log.url) == 1000


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"name": "Jane", "phone": "1" * 60}, "phone"),
        ({"name": "Jane", "value": 1e12}, "value"),
        ({"name": "Jane", "value": -5}, "value"),
        ({"name": "J" * 300}, "name"),
        ({"name": "Jane", "email": "a" * 330 + "@example.com"}, "email"),
        ({"name": "Jane", "source": "s" * 150}, "source"),
    ],
)
def test_draft_outside_lead_limits_is_validation_error(db, endpoint, payload, field):
    result = _ingest(db, endpoint, payload)

    assert result.status_code == 400
    assert result.error.startswith("Validation failed")
    assert field in result.error
    assert _count(db, Lead) == 0
    log = db.scalar(select(WebhookLog))
    assert log.response_status == 400
    assert log.error_message == result.error
