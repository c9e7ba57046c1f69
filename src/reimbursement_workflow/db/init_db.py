"""
reimbursement_workflow.db.init_db

Create tables for local development and tests.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from reimbursement_workflow.db import models  # noqa: F401  # register rows on Base.metadata
from reimbursement_workflow.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    """
    Dev/test bootstrap: create tables if they don't exist.
    Production schema changes go through Alembic.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
