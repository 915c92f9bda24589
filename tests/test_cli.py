"""estate-admin CLI commands against the test database."""

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker
from typer.testing import CliRunner

from estate_admin.cli import app
from estate_admin.db import session as session_module
from estate_admin.models.audit_log import PermissionAuditLog, AuditAction
from estate_admin.models.button import Button

runner = CliRunner()


@pytest.fixture
def cli_db(db, engine, monkeypatch):
    monkeypatch.setattr(session_module, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine))
    return db


# One StaticPool connection is shared, so the fixture session must not hold an
# open transaction while a command runs.


def test_scan_dry_run_lists_routes_without_writing(cli_db):
    result = runner.invoke(app, ["permissions", "scan", "--dry-run"])
    assert result.exit_code == 0
    assert "get_admin_roles" in result.output
    assert cli_db.query(Button).count() == 0


def test_scan_syncs_buttons(cli_db):
    result = runner.invoke(app, ["permissions", "scan"])
    assert result.exit_code == 0
    assert "0 marked absent" in result.output
    assert cli_db.query(Button).filter(Button.identifier == "get_admin_roles").count() == 1
    cli_db.rollback()

    again = runner.invoke(app, ["permissions", "scan"])
    assert again.exit_code == 0
    assert " 0 created" in again.output


def test_audit_cleanup_command(cli_db):
    for _ in range(2):
        cli_db.add(PermissionAuditLog(action=AuditAction.UPDATE, resource_type="role", created_at=datetime(2023, 1, 1)))
    cli_db.commit()

    result = runner.invoke(app, ["audit", "cleanup", "--before-date", "2024-01-01"])
    assert result.exit_code == 0
    assert "cleaned up 2 audit logs" in result.output
    assert cli_db.query(PermissionAuditLog).filter(PermissionAuditLog.action == AuditAction.CLEANUP).count() == 1
