"""Activity feed API."""

import pytest

from crm.services import activity_service


@pytest.mark.asyncio
async def test_without_workspace_returns_empty_list(authed_client):
    res = await authed_client.get("/activities")
    assert res.status_code == 200
    assert res.json() == []


@pytest.mark.asyncio
async def test_lists_workspace_activity_with_metadata(authed_client, workspace):
    res = await authed_client.get("/activities", params={"workspace_id": str(workspace.id)})
    assert res.status_code == 200

    items = res.json()
    workspace_created = [
        a for a in items if a["entity_type"] == "workspace" and a["activity_type"] == "created"
    ]
    assert len(workspace_created) == 1
    assert workspace_created[0]["metadata"] == {"slug": workspace.slug}


@pytest.mark.asyncio
async def test_limit_is_respected(authed_client, db, workspace):
    for i in range(4):
        activity_service.log_activity(
            db,
            workspace_id=workspace.id,
            activity_type="email_sent",
            entity_type="workspace",
            description=f"Email {i}",
        )
    db.commit()

    res = await authed_client.get(
        "/activities", params={"workspace_id": str(workspace.id), "limit": 2}
    )
    assert len(res.json()) == 2


@pytest.mark.asyncio
async def test_requires_membership(client, workspace, user_factory, auth_headers):
    outsider = user_factory("outsider")
    res = await client.get(
        "/activities", params={"workspace_id": str(workspace.id)}, headers=auth_headers(outsider)
    )
    assert res.status_code == 404
