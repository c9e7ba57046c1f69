"""
reimbursement_workflow.api.app

FastAPI app factory for the reimbursement workflow service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine, HTTP client, workflow engine).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from reimbursement_workflow import __version__
from reimbursement_workflow.api.routers.dev_auth import router as dev_auth_router
from reimbursement_workflow.api.routers.directory import router as directory_router
from reimbursement_workflow.api.routers.health import router as health_router
from reimbursement_workflow.api.routers.requests import router as requests_router
from reimbursement_workflow.db.init_db import init_db
from reimbursement_workflow.db.session import create_engine, create_sessionmaker
from reimbursement_workflow.observability.logging import configure_logging, get_logger
from reimbursement_workflow.observability.middleware import RequestContextMiddleware
from reimbursement_workflow.services.workflow_service import build_engine
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.ports import NotificationGateway

log = get_logger(__name__)


def create_app(*, settings: Settings, notifier: NotificationGateway | None = None) -> FastAPI:
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        json_logs=settings.log_json,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.http = (
            httpx.AsyncClient() if settings.notification_webhook_url and notifier is None else None
        )
        app.state.workflow = build_engine(
            settings=settings,
            session_factory=app.state.sessionmaker,
            http=app.state.http,
            notifier=notifier,
        )
        try:
            if settings.env in ("dev", "test"):
                # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
                await init_db(engine)
            yield
        finally:
            if app.state.http is not None:
                await app.state.http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Reimbursement Workflow",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(directory_router)
    app.include_router(requests_router)

    return app


# --- Module Notes -----------------------------------------------------------
# This file is intentionally small: app composition stays here; workflow rules stay in
# `reimbursement_workflow.workflow`.
