"""Activity log: append-only, best-effort, newest first."""

from sqlalchemy import func, select

from crm.core.config import settings
from crm.db.enums import ActivityType, EntityType
from crm.db.models import Activity, Lead
from crm.services import activity_service


def _count(db, workspace_id):
    return db.scalar(select(func.count(Activity.id)).where(Activity.workspace_id == workspace_id))


def test_identical_entries_are_not_deduplicated(db, workspace, owner):
    before = _count(db, workspace.id)
    for _ in range(2):
        activity_service.log_activity(
            db,
            workspace_id=workspace.id,
            activity_type=ActivityType.NOTE_ADDED,
            entity_type=EntityType.WORKSPACE,
            entity_id=workspace.id,
            performed_by=owner.id,
            description="Same note",
            metadata={"note": "hello"},
        )
    db.commit()

    assert _count(db, workspace.id) == before + 2


def test_list_is_scoped_and_clamped(db, workspace, owner, monkeypatch):
    for i in range(5):
        activity_service.log_activity(
            db,
            workspace_id=workspace.id,
            activity_type=ActivityType.CALL_MADE,
            entity_type=EntityType.WORKSPACE,
            description=f"Call {i}",
        )
    db.commit()
    monkeypatch.setattr(settings, "ACTIVITY_MAX_LIMIT", 3)

    assert len(activity_service.list_activities(db, workspace.id, limit=100)) == 3
    assert len(activity_service.list_activities(db, workspace.id, limit=0)) == 1
    assert all(a.workspace_id == workspace.id for a in activity_service.list_activities(db, workspace.id))


def test_list_is_newest_first(db, workspace):
    items = activity_service.list_activities(db, workspace.id, limit=50)
    stamps = [a.created_at for a in items]
    assert stamps == sorted(stamps, reverse=True)


def test_failure_does_not_break_the_primary_write(db, workspace):
    lead = Lead(workspace_id=workspace.id, name="Jane", status="new")
    db.add(lead)
    db.flush()

    result = activity_service.log_activity(
        db,
        workspace_id=workspace.id,
        activity_type=ActivityType.CREATED,
        entity_type=EntityType.LEAD,
        entity_id=lead.id,
        description=None,  # violates NOT NULL
    )
    db.commit()

    assert result is None
    assert db.get(Lead, lead.id) is not None


def test_no_update_or_delete_api():
    assert not any(
        name.startswith(("update", "delete", "remove")) for name in dir(activity_service)
    )
