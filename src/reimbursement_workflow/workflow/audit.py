"""
reimbursement_workflow.workflow.audit

Audit recorder: the only path by which the engine writes history.

Responsibilities:
- Append exactly one `HistoryEntry` per applied transition, inside the unit of work.
- Read a request's ledger and reconstruct its status by replay.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from reimbursement_workflow.workflow.ports import HistoryLedger
from reimbursement_workflow.workflow.transitions import replay_status
from reimbursement_workflow.workflow.types import Action, HistoryEntry, RequestStatus


class AuditRecorder:
    """Append-only wrapper over a `HistoryLedger`; it exposes no update or delete."""

    def __init__(self, ledger: HistoryLedger) -> None:
        self._ledger = ledger

    async def record(
        self,
        *,
        request_id: uuid.UUID,
        actor_id: str,
        action: Action,
        old_status: RequestStatus | None,
        new_status: RequestStatus,
        comment: str | None,
        at: datetime,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            request_id=request_id,
            actor_id=actor_id,
            action=action,
            old_status=old_status,
            new_status=new_status,
            comment=comment,
            created_at=at,
        )
        return await self._ledger.append(entry)

    async def entries_for(self, request_id: uuid.UUID) -> list[HistoryEntry]:
        return await self._ledger.list_for_request(request_id)

    async def reconstruct_status(self, request_id: uuid.UUID) -> RequestStatus:
        return replay_status(await self.entries_for(request_id))
