"""
reimbursement_workflow.db.repositories.history

Repository for `HistoryEntryRow` (the engine's `HistoryLedger`).

Responsibilities:
- Append transition records inside the caller's transaction.
- Query a request's ledger oldest-first for replay and display.
"""

from __future__ import annotations

import dataclasses
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reimbursement_workflow.db.models import HistoryEntryRow
from reimbursement_workflow.workflow.types import HistoryEntry


class HistoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: HistoryEntry) -> HistoryEntry:
        # Append-only; this repo has no update or delete.
        row = HistoryEntryRow(
            request_id=entry.request_id,
            actor_id=entry.actor_id,
            action=entry.action,
            old_status=entry.old_status,
            new_status=entry.new_status,
            comment=entry.comment,
            created_at=entry.created_at,
        )
        self._session.add(row)
        await self._session.flush()
        return dataclasses.replace(entry, sequence=row.id)

    async def list_for_request(self, request_id: uuid.UUID) -> list[HistoryEntry]:
        stmt = (
            select(HistoryEntryRow)
            .where(HistoryEntryRow.request_id == request_id)
            .order_by(HistoryEntryRow.created_at, HistoryEntryRow.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            HistoryEntry(
                request_id=r.request_id,
                actor_id=r.actor_id,
                action=r.action,
                old_status=r.old_status,
                new_status=r.new_status,
                comment=r.comment,
                created_at=r.created_at,
                sequence=r.id,
            )
            for r in rows
        ]
