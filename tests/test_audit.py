"""Audit recorder: query, stats, retention cleanup, failure policy."""

from datetime import datetime, timedelta, timezone

import pytest

from estate_admin.core.exceptions import ValidationError
from estate_admin.core.timeutils import utcnow
from estate_admin.models.audit_log import PermissionAuditLog, AuditAction
from estate_admin.services.audit_service import (
    AuditContext,
    AuditEntry,
    AuditService,
    Audited,
    audited,
)


def _log(db, action, created_at=None, description="", user_id=1, resource_type="role"):
    row = PermissionAuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=1,
        description=description,
        ip_address="10.0.0.1",
        created_at=created_at or utcnow(),
    )
    db.add(row)
    return row


def test_query_by_action_with_stats(db):
    _log(db, AuditAction.CREATE, description="Created role: FINANCE_LEAD")
    _log(db, AuditAction.UPDATE, description="Updated role: FINANCE_LEAD")
    db.commit()

    result = AuditService.query_logs(db, action="CREATE")

    assert len(result["data"]) == 1
    assert result["data"][0]["action"] == "CREATE"
    assert result["pagination"] == {"total": 1, "page": 1, "pageSize": 20, "totalPages": 1}
    assert result["stats"] == {"CREATE": 1, "UPDATE": 1}


def test_query_filters_and_pagination(db):
    base = utcnow() - timedelta(days=3)
    for i in range(25):
        _log(db, AuditAction.UPDATE, created_at=base + timedelta(minutes=i),
             description=f"entry {i}", user_id=1 if i % 2 else 2, resource_type="menu")
    _log(db, AuditAction.DELETE, created_at=base - timedelta(days=10), description="old delete")
    db.commit()

    page = AuditService.query_logs(db, resource_type="menu", page=2, page_size=10)
    assert page["pagination"] == {"total": 25, "page": 2, "pageSize": 10, "totalPages": 3}
    assert page["data"][0]["description"] == "entry 14"

    assert AuditService.query_logs(db, user_id=2)["pagination"]["total"] == 13
    assert AuditService.query_logs(db, search="old")["pagination"]["total"] == 1
    assert AuditService.query_logs(db, search="10.0.0")["pagination"]["total"] == 26
    window = AuditService.query_logs(db, start_date=base - timedelta(days=1), end_date=base + timedelta(minutes=4))
    assert window["pagination"]["total"] == 5
    aware = AuditService.query_logs(db, start_date=(base - timedelta(days=1)).replace(tzinfo=timezone.utc))
    assert aware["pagination"]["total"] == 25


def test_query_rejects_unknown_action(db):
    with pytest.raises(ValidationError):
        AuditService.query_logs(db, action="EXPLODE")


def test_stats_only_cover_recent_window(db):
    _log(db, AuditAction.CREATE)
    _log(db, AuditAction.CREATE, created_at=utcnow() - timedelta(days=45))
    db.commit()
    assert AuditService.action_stats(db) == {"CREATE": 1}
    assert AuditService.action_stats(db, window_days=60) == {"CREATE": 2}


def test_cleanup_default_window_is_noop_when_nothing_is_old(db, ctx):
    _log(db, AuditAction.CREATE, created_at=utcnow() - timedelta(days=10))
    db.commit()

    result = AuditService.cleanup(db, ctx)

    assert result.to_dict() == {"deletedCount": 0, "message": "no logs needed cleanup"}
    assert db.query(PermissionAuditLog).count() == 1
    assert db.query(PermissionAuditLog).filter(PermissionAuditLog.action == AuditAction.CLEANUP).count() == 0


def test_cleanup_explicit_cutoff(db, ctx):
    old = datetime(2023, 6, 1)
    for i in range(100):
        _log(db, AuditAction.UPDATE, created_at=old + timedelta(hours=i))
    _log(db, AuditAction.CREATE, created_at=datetime(2024, 3, 1))
    db.commit()

    result = AuditService.cleanup(db, ctx, before_date=datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert result.deleted_count == 100
    assert result.to_dict()["deletedCount"] == 100
    cleanup_logs = db.query(PermissionAuditLog).filter(PermissionAuditLog.action == AuditAction.CLEANUP).all()
    assert len(cleanup_logs) == 1
    assert "100" in cleanup_logs[0].description
    assert cleanup_logs[0].resource_id == 0
    assert db.query(PermissionAuditLog).count() == 2


def test_cleanup_cutoff_beats_keep_days(db, ctx):
    now = utcnow()
    _log(db, AuditAction.UPDATE, created_at=now - timedelta(days=5))
    _log(db, AuditAction.UPDATE, created_at=now - timedelta(days=20))
    db.commit()

    result = AuditService.cleanup(db, ctx, before_date=now - timedelta(days=30), keep_days=1)
    assert result.deleted_count == 0

    result = AuditService.cleanup(db, ctx, keep_days=10)
    assert result.deleted_count == 1


def test_cleanup_default_retention(db, ctx):
    now = utcnow()
    _log(db, AuditAction.UPDATE, created_at=now - timedelta(days=91))
    _log(db, AuditAction.UPDATE, created_at=now - timedelta(days=89))
    db.commit()
    assert AuditService.cleanup(db, ctx, now=now).deleted_count == 1


def test_record_failure_is_swallowed(db, ctx, monkeypatch, caplog):
    def broken_commit():
        raise RuntimeError("disk full")

    monkeypatch.setattr(db, "commit", broken_commit)
    entry = AuditEntry(action=AuditAction.CREATE, resource_type="role", resource_id=7)
    with caplog.at_level("ERROR", logger="estate_admin.audit"):
        assert AuditService.record(db, ctx, entry) is None
    assert "Failed to write audit entry" in caplog.text


def test_audited_decorator_records_after_success(db, ctx):
    @audited
    def rename(session, context, value):
        return Audited(value.upper(), AuditEntry(
            action=AuditAction.UPDATE, resource_type="role", resource_id=3, after={"name": value},
        ))

    assert rename(db, ctx, "abc") == "ABC"
    log = db.query(PermissionAuditLog).one()
    assert log.resource_id == 3
    assert log.ip_address == "127.0.0.1"
    assert log.user_agent == "pytest"


def test_audited_decorator_skips_entry_on_error(db, ctx):
    @audited
    def fail(session, context):
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        fail(db, ctx)
    assert db.query(PermissionAuditLog).count() == 0


def test_context_from_request_prefers_forwarded_for():
    class FakeRequest:
        headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1", "user-agent": "x" * 600}
        client = None

    class FakePrincipal:
        id = 42

    context = AuditContext.from_request(FakeRequest(), FakePrincipal())
    assert context.actor_id == 42
    assert context.ip_address == "203.0.113.9"
    assert len(context.user_agent) == 500
