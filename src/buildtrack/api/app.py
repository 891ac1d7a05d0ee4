"""
buildtrack.api.app

FastAPI app factory for the BuildTrack service.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from fastapi import FastAPI

from buildtrack import __version__
from buildtrack.api.envelope import install_exception_handlers
from buildtrack.api.routers.approvals import router as approvals_router
from buildtrack.api.routers.audit import router as audit_router
from buildtrack.api.routers.auth import router as auth_router
from buildtrack.api.routers.dev_auth import router as dev_auth_router
from buildtrack.api.routers.equipment import router as equipment_router
from buildtrack.api.routers.expenses import router as expenses_router
from buildtrack.api.routers.health import router as health_router
from buildtrack.api.routers.labour import router as labour_router
from buildtrack.api.routers.phase_tracking import router as phase_tracking_router
from buildtrack.api.routers.phases import router as phases_router
from buildtrack.api.routers.professional import activities_router, services_router
from buildtrack.api.routers.projects import router as projects_router
from buildtrack.api.routers.reallocations import router as reallocations_router
from buildtrack.api.routers.reports import router as reports_router
from buildtrack.api.routers.subcontractors import router as subcontractors_router
from buildtrack.db.init_db import init_db
from buildtrack.db.session import create_engine, create_sessionmaker
from buildtrack.observability.logging import configure_logging, get_logger
from buildtrack.observability.middleware import RequestContextMiddleware
from buildtrack.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="BuildTrack Construction Management API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    install_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(auth_router)
    app.include_router(projects_router)
    app.include_router(phases_router)
    app.include_router(phase_tracking_router)
    app.include_router(reallocations_router)
    app.include_router(labour_router)
    app.include_router(equipment_router)
    app.include_router(subcontractors_router)
    app.include_router(expenses_router)
    app.include_router(services_router)
    app.include_router(activities_router)
    app.include_router(reports_router)
    app.include_router(audit_router)
    app.include_router(approvals_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# Nested phase routes (milestones, quality checkpoints) live in `phase_tracking`;
# `phases` owns only the phase resource itself.
