"""Estate admin CLI tool (estate-admin)."""

from datetime import datetime
from typing import Optional

import typer

app = typer.Typer(name="estate-admin", help="Estate admin console CLI")
db_app = typer.Typer(help="Database management commands")
permissions_app = typer.Typer(help="Permission catalog commands")
audit_app = typer.Typer(help="Audit log commands")
app.add_typer(db_app, name="db")
app.add_typer(permissions_app, name="permissions")
app.add_typer(audit_app, name="audit")


@db_app.command("init")
def db_init():
    """Create all tables."""
    from estate_admin.db.session import init_db

    init_db()
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed system roles, the super-admin and the base menus."""
    from estate_admin.db.session import SessionLocal
    from estate_admin.db.seeds.seed_roles import seed_roles
    from estate_admin.db.seeds.seed_super_admin import seed_super_admin
    from estate_admin.db.seeds.seed_menus import seed_menus

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_super_admin(db)
        seed_menus(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@permissions_app.command("scan")
def permissions_scan(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only print the derived permissions"),
):
    """Sync button permissions with the API routes."""
    from estate_admin.db.session import SessionLocal
    from estate_admin.main import app as api_app
    from estate_admin.services.route_registry import RouteRegistry
    from estate_admin.services.scanner_service import scanner_service

    registry = RouteRegistry.from_app(api_app)
    if dry_run:
        for record in scanner_service.preview(registry):
            typer.echo(f"  {record.method:<6} {record.path:<45} {record.identifier}")
        return

    db = SessionLocal()
    try:
        report = scanner_service.scan_and_sync(db, registry)
    finally:
        db.close()

    typer.echo(
        f"✅ Scanned {len(report.records)} routes: {report.created} created, "
        f"{report.updated} updated, {len(report.absent)} marked absent"
    )
    for error in report.errors:
        typer.echo(f"⚠️  {error.method} {error.path}: {error.error}", err=True)
    if report.errors:
        raise typer.Exit(code=1)


@audit_app.command("cleanup")
def audit_cleanup(
    before_date: Optional[datetime] = typer.Option(None, "--before-date", help="Delete logs created before this time"),
    keep_days: Optional[int] = typer.Option(None, "--keep-days", min=1, help="Keep logs of the last N days"),
):
    """Purge old permission audit logs."""
    from estate_admin.db.session import SessionLocal
    from estate_admin.services.audit_service import AuditContext, audit_service

    db = SessionLocal()
    try:
        result = audit_service.cleanup(
            db, AuditContext.system(), before_date=before_date, keep_days=keep_days,
        )
    finally:
        db.close()
    typer.echo(f"✅ {result.message}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("estate_admin.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
