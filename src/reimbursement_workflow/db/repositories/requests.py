"""
reimbursement_workflow.db.repositories.requests

Repository for reimbursement requests (the engine's `RequestStore`).

Responsibilities:
- Map `ReimbursementRequestRow` to and from the immutable domain aggregate.
- Load a request together with its version.
- Write a new state only if the version is unchanged since it was read.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection
from typing import Any

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reimbursement_workflow.db.models import ReimbursementRequestRow
from reimbursement_workflow.workflow.types import ReimbursementRequest, RequestStatus


def _to_domain(row: ReimbursementRequestRow) -> ReimbursementRequest:
    return ReimbursementRequest(
        id=row.id,
        submitter_id=row.submitter_id,
        title=row.title,
        amount=row.amount,
        expense_type=row.expense_type,
        expense_date=row.expense_date,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        description=row.description,
        cost_center_id=row.cost_center_id,
        receipt_refs=tuple(row.receipt_refs or ()),
        manager_comment=row.manager_comment,
        finance_comment=row.finance_comment,
        submitted_at=row.submitted_at,
        approved_at=row.approved_at,
        paid_at=row.paid_at,
        payment_method=row.payment_method,
        payment_date=row.payment_date,
        payment_proof_ref=row.payment_proof_ref,
    )


def _mutable_values(request: ReimbursementRequest) -> dict[str, Any]:
    # Identity (id, submitter_id, created_at) is fixed at insert time.
    return {
        "title": request.title,
        "description": request.description,
        "expense_type": request.expense_type,
        "amount": request.amount,
        "expense_date": request.expense_date,
        "cost_center_id": request.cost_center_id,
        "receipt_refs": list(request.receipt_refs),
        "status": request.status,
        "manager_comment": request.manager_comment,
        "finance_comment": request.finance_comment,
        "submitted_at": request.submitted_at,
        "approved_at": request.approved_at,
        "paid_at": request.paid_at,
        "payment_method": request.payment_method,
        "payment_date": request.payment_date,
        "payment_proof_ref": request.payment_proof_ref,
        "updated_at": request.updated_at,
    }


class RequestRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, request_id: uuid.UUID) -> tuple[ReimbursementRequest, int] | None:
        row = await self._session.get(ReimbursementRequestRow, request_id, populate_existing=True)
        if row is None:
            return None
        return _to_domain(row), row.version

    async def insert(self, request: ReimbursementRequest) -> None:
        row = ReimbursementRequestRow(
            id=request.id,
            submitter_id=request.submitter_id,
            created_at=request.created_at,
            version=1,
            **_mutable_values(request),
        )
        self._session.add(row)
        await self._session.flush()

    async def compare_and_swap(
        self, request_id: uuid.UUID, version: int, new_request: ReimbursementRequest
    ) -> bool:
        # Conditional UPDATE: zero rows matched means another writer bumped the version.
        stmt = (
            update(ReimbursementRequestRow)
            .where(
                ReimbursementRequestRow.id == request_id,
                ReimbursementRequestRow.version == version,
            )
            .values(version=version + 1, **_mutable_values(new_request))
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_for_submitter(self, submitter_id: str) -> list[ReimbursementRequest]:
        stmt = (
            select(ReimbursementRequestRow)
            .where(ReimbursementRequestRow.submitter_id == submitter_id)
            .order_by(desc(ReimbursementRequestRow.created_at))
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_to_domain(r) for r in rows]

    async def list_by_status(
        self,
        statuses: Collection[RequestStatus],
        *,
        submitter_ids: Collection[str] | None = None,
    ) -> list[ReimbursementRequest]:
        # Review queues: oldest submission first. `None` means any submitter.
        stmt = select(ReimbursementRequestRow).where(
            ReimbursementRequestRow.status.in_(list(statuses))
        )
        if submitter_ids is not None:
            stmt = stmt.where(ReimbursementRequestRow.submitter_id.in_(list(submitter_ids)))
        stmt = stmt.order_by(
            ReimbursementRequestRow.submitted_at,
            ReimbursementRequestRow.created_at,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_to_domain(r) for r in rows]


# --- Module Notes -----------------------------------------------------------
# Requests are never deleted here; removal is an administrative concern.
