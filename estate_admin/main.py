"""Application factory for the estate admin API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from estate_admin.core.config import settings
from estate_admin.core.exceptions import EstateAdminError
from estate_admin.core.middleware import setup_middleware

from estate_admin.api.auth import router as auth_router
from estate_admin.api.roles import router as roles_router
from estate_admin.api.menus import router as menus_router
from estate_admin.api.buttons import router as buttons_router
from estate_admin.api.users import router as users_router
from estate_admin.api.audit_logs import router as audit_logs_router
from estate_admin.api.scan import router as scan_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("estate_admin")


def sync_permissions(app: FastAPI) -> None:
    """Reconcile the button catalog with the app's routes."""
    from estate_admin.db.session import SessionLocal
    from estate_admin.services.route_registry import RouteRegistry
    from estate_admin.services.scanner_service import scanner_service

    db = SessionLocal()
    try:
        report = scanner_service.scan_and_sync(db, RouteRegistry.from_app(app))
        logger.info(
            "Startup permission scan: %d created, %d updated, %d errors",
            report.created, report.updated, len(report.errors),
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Optionally reconcile the permission catalog before serving."""
    logger.info("Starting %s", settings.APP_NAME)
    if settings.SCAN_PERMISSIONS_ON_STARTUP:
        try:
            sync_permissions(app)
        except EstateAdminError as e:
            logger.warning("Startup permission scan failed: %s", e.message)

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


async def estate_admin_exception_handler(request: Request, exc: EstateAdminError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Estate Admin API",
        description="Role-based access control for the real-estate sales console",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # Exception handler for domain errors
    app.add_exception_handler(EstateAdminError, estate_admin_exception_handler)

    # Register routers
    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(roles_router, prefix=settings.API_PREFIX)
    app.include_router(menus_router, prefix=settings.API_PREFIX)
    app.include_router(buttons_router, prefix=settings.API_PREFIX)
    app.include_router(users_router, prefix=settings.API_PREFIX)
    app.include_router(audit_logs_router, prefix=settings.API_PREFIX)
    app.include_router(scan_router, prefix=settings.API_PREFIX)

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        """Liveness probe, served outside the API prefix."""
        return {"status": "ok"}

    return app


app = create_app()
