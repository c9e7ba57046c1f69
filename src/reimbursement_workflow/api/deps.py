"""
reimbursement_workflow.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the workflow engine.
- Encapsulate app.state access patterns (engine/sessionmaker/workflow).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.engine import WorkflowEngine


def settings_dep(request: Request) -> Settings:
    # The app is built with an explicit Settings object; serve that one, not the env cache.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `reimbursement_workflow.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the caller.
    async with session_factory() as session:
        yield session


def workflow_engine(request: Request) -> WorkflowEngine:
    return request.app.state.workflow  # type: ignore[attr-defined]
