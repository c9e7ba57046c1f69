"""
reimbursement_workflow.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`): database reachable and workflow tables present.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reimbursement_workflow.api.deps import db_session
from reimbursement_workflow.db.models import HistoryEntryRow, ReimbursementRequestRow

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    # Fails until migrations (or init_db in dev/test) have created both tables.
    await session.execute(select(ReimbursementRequestRow.id).limit(1))
    await session.execute(select(HistoryEntryRow.id).limit(1))
    return {"status": "ready"}
