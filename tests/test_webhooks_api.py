"""Webhook endpoint management and inbound delivery over HTTP."""

import json

import pytest
from sqlalchemy import func, select

from crm.core.security import compute_webhook_signature
from crm.db.models import Lead, WebhookEndpoint, WebhookLog


async def _create(authed_client, workspace, **extra):
    res = await authed_client.post(
        "/webhooks",
        json={"workspace_id": str(workspace.id), "name": "Landing page", **extra},
    )
    assert res.status_code == 201, res.text
    return res.json()


# =============================================================================
# Management
# =============================================================================

@pytest.mark.asyncio
async def test_create_returns_url_token_and_secret(authed_client, workspace):
    data = await _create(authed_client, workspace)

    token = data["url"].rsplit("/", 1)[-1]
    assert data["url"] == f"http://test/webhooks/receive/{token}"
    assert len(token) == 32
    assert len(data["secret"]) == 64
    assert data["is_active"] is True
    assert sorted(data["events"]) == ["lead.created", "lead.updated"]
    assert data["webhook_type"] == "custom"


@pytest.mark.asyncio
async def test_secret_only_returned_on_create(authed_client, workspace):
    created = await _create(authed_client, workspace)

    res = await authed_client.get(f"/webhooks/{created['id']}")
    assert res.status_code == 200
    assert "secret" not in res.json()

    res = await authed_client.get("/webhooks", params={"workspace_id": str(workspace.id)})
    assert [w["id"] for w in res.json()] == [created["id"]]
    assert "secret" not in res.json()[0]


@pytest.mark.asyncio
async def test_update_never_changes_url(authed_client, workspace):
    created = await _create(authed_client, workspace)

    res = await authed_client.put(
        f"/webhooks/{created['id']}",
        json={"name": "Renamed", "webhook_type": "hubspot", "events": ["lead.created"]},
    )
    assert res.status_code == 200
    data = res.json()
    assert data["name"] == "Renamed"
    assert data["webhook_type"] == "hubspot"
    assert data["events"] == ["lead.created"]
    assert data["url"] == created["url"]


@pytest.mark.asyncio
async def test_invalid_rules_rejected(authed_client, workspace):
    res = await authed_client.post(
        "/webhooks",
        json={
            "workspace_id": str(workspace.id),
            "name": "Bad rules",
            "transformation_rules": {"name": {"path": "a", "transform": "explode"}},
        },
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_delete_deactivates_and_keeps_logs(authed_client, client, db, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]
    await client.post(f"/webhooks/receive/{token}", json={"name": "Before"})

    res = await authed_client.delete(f"/webhooks/{created['id']}")
    assert res.status_code == 200

    endpoint = db.scalar(select(WebhookEndpoint))
    assert endpoint.is_active is False
    assert db.scalar(select(func.count(WebhookLog.id))) == 1

    res = await client.post(f"/webhooks/receive/{token}", json={"name": "After"})
    assert res.status_code == 404
    assert db.scalar(select(func.count(Lead.id))) == 1


@pytest.mark.asyncio
async def test_logs_endpoint(authed_client, client, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]
    await client.post(f"/webhooks/receive/{token}", json={"name": "One"})
    await client.post(f"/webhooks/receive/{token}", content=b"oops")

    res = await authed_client.get(f"/webhooks/{created['id']}/logs")
    assert res.status_code == 200
    statuses = sorted(log["response_status"] for log in res.json())
    assert statuses == [200, 400]


@pytest.mark.asyncio
async def test_viewer_cannot_manage_webhooks(client, workspace, add_member, auth_headers):
    viewer, _ = add_member("viewer")

    res = await client.post(
        "/webhooks",
        json={"workspace_id": str(workspace.id), "name": "Nope"},
        headers=auth_headers(viewer),
    )
    assert res.status_code == 403

    res = await client.get(
        "/webhooks", params={"workspace_id": str(workspace.id)}, headers=auth_headers(viewer)
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_manager_can_read_but_not_create(client, workspace, add_member, auth_headers):
    manager, _ = add_member("manager")

    res = await client.get(
        "/webhooks", params={"workspace_id": str(workspace.id)}, headers=auth_headers(manager)
    )
    assert res.status_code == 200

    res = await client.post(
        "/webhooks",
        json={"workspace_id": str(workspace.id), "name": "Nope"},
        headers=auth_headers(manager),
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_management_requires_authentication(client, workspace):
    res = await client.get("/webhooks", params={"workspace_id": str(workspace.id)})
    assert res.status_code == 401
    assert res.json() == {"message": "Not authenticated"}


# =============================================================================
# Inbound delivery
# =============================================================================

@pytest.mark.asyncio
async def test_receive_creates_lead(authed_client, client, db, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]

    res = await client.post(
        f"/webhooks/receive/{token}",
        json={"name": "Jane Doe", "email": "jane@example.com", "value": 1500},
        headers={"User-Agent": "form-bot/1.0"},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "Lead created successfully"

    lead = db.scalar(select(Lead))
    assert str(lead.id) == body["lead_id"]
    assert lead.workspace_id == workspace.id
    assert lead.value == 1500

    log = db.scalar(select(WebhookLog))
    assert log.method == "POST"
    assert log.user_agent == "form-bot/1.0"
    assert log.processing_time_ms is not None


@pytest.mark.asyncio
async def test_receive_rejects_bad_signature(authed_client, client, db, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]
    body = json.dumps({"name": "Forged"}).encode()

    res = await client.post(
        f"/webhooks/receive/{token}",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Webhook-Signature": compute_webhook_signature("wrong", body),
        },
    )

    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Invalid webhook signature"}
    assert db.scalar(select(func.count(Lead.id))) == 0


@pytest.mark.asyncio
async def test_receive_accepts_good_signature(authed_client, client, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]
    body = json.dumps({"name": "Signed"}).encode()

    res = await client.post(
        f"/webhooks/receive/{token}",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Webhook-Signature": compute_webhook_signature(created["secret"], body),
        },
    )
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_receive_unknown_token(client, db):
    res = await client.post("/webhooks/receive/does-not-exist", json={"name": "x"})

    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Webhook endpoint not found or inactive"}
    assert db.scalar(select(func.count(WebhookLog.id))) == 0


@pytest.mark.asyncio
async def test_describe_endpoint(authed_client, client, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]

    res = await client.get(f"/webhooks/receive/{token}")
    assert res.status_code == 200
    data = res.json()
    assert data["method"] == "POST"
    assert "name" in data["fields"]
    assert "secret" not in data


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["name", "is_active", "webhook_type"])
async def test_update_rejects_null_for_required_fields(authed_client, db, workspace, field):
    created = await _create(authed_client, workspace)

    res = await authed_client.put(f"/webhooks/{created['id']}", json={field: None})

    assert res.status_code == 400
    assert field in res.json()["message"]
    endpoint = db.scalar(select(WebhookEndpoint))
    assert endpoint.name == "Landing page"
    assert endpoint.is_active is True


@pytest.mark.asyncio
async def test_receive_clips_oversized_request_metadata(authed_client, client, db, workspace):
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]

    res = await client.post(
        f"/webhooks/receive/{token}",
        json={"name": "Jane"},
        headers={
            "X-Request-ID": "r" * 300,
            "User-Agent": "u" * 600,
            "X-Forwarded-For": "i" * 100,
        },
    )

    assert res.status_code == 200
    logs = list(db.scalars(select(WebhookLog)))
    assert len(logs) == 1
    assert logs[0].request_id == "r" * 255
    assert logs[0].user_agent == "u" * 500
    assert logs[0].ip_address == "i" * 64


@pytest.mark.asyncio
async def test_receive_runs_pipeline_off_the_event_loop(authed_client, client, workspace, monkeypatch):
    from crm.routers import webhooks as webhooks_router

    offloaded = []
    original = webhooks_router.run_in_threadpool

    async def recording(func, *args, **kwargs):
        offloaded.append(func)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(webhooks_router, "run_in_threadpool", recording)
    created = await _create(authed_client, workspace)
    token = created["url"].rsplit("/", 1)[-1]

    res = await client.post(f"/webhooks/receive/{token}", json={"name": "Jane"})

    assert res.status_code == 200
    assert offloaded == [webhooks_router._ingest_and_commit]
