"""
reimbursement_workflow.api.routers.requests

Endpoints for reimbursement requests.

Responsibilities:
- Create drafts and list the caller's own requests.
- Read a request and its history.
- Serve the manager and finance review queues.
- Forward transition requests to the workflow engine and map its errors to HTTP.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.status import HTTP_201_CREATED

from reimbursement_workflow.api.deps import settings_dep, workflow_engine
from reimbursement_workflow.api.errors import request_http_error, to_http_error
from reimbursement_workflow.auth.deps import get_principal
from reimbursement_workflow.auth.models import Principal
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.engine import WorkflowEngine
from reimbursement_workflow.workflow.errors import WorkflowError
from reimbursement_workflow.workflow.transitions import allowed_actions
from reimbursement_workflow.workflow.types import (
    Action,
    DraftFields,
    ExpenseType,
    HistoryEntry,
    PaymentMethod,
    ReimbursementRequest,
    RequestStatus,
    TransitionFields,
)

router = APIRouter(prefix="/v1/requests", tags=["requests"])


class CreateRequestBody(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    expense_type: ExpenseType
    expense_date: date
    description: str | None = None
    cost_center_id: str | None = Field(default=None, max_length=128)
    receipt_refs: list[str] = Field(default_factory=list)


class TransitionBody(BaseModel):
    action: Action
    comment: str | None = None
    payment_method: str | None = None
    payment_date: date | None = None
    payment_proof_ref: str | None = Field(default=None, max_length=512)


class RequestResponse(BaseModel):
    id: uuid.UUID
    submitter_id: str
    title: str
    description: str | None
    expense_type: ExpenseType
    amount: Decimal
    expense_date: date
    cost_center_id: str | None
    receipt_refs: list[str]
    status: RequestStatus
    manager_comment: str | None
    finance_comment: str | None
    submitted_at: datetime | None
    approved_at: datetime | None
    paid_at: datetime | None
    payment_method: PaymentMethod | None
    payment_date: date | None
    payment_proof_ref: str | None
    created_at: datetime
    updated_at: datetime
    # Actions the status admits; the caller may still fail the actor gate.
    allowed_actions: list[Action]

    @classmethod
    def from_domain(cls, r: ReimbursementRequest) -> RequestResponse:
        return cls(
            id=r.id,
            submitter_id=r.submitter_id,
            title=r.title,
            description=r.description,
            expense_type=r.expense_type,
            amount=r.amount,
            expense_date=r.expense_date,
            cost_center_id=r.cost_center_id,
            receipt_refs=list(r.receipt_refs),
            status=r.status,
            manager_comment=r.manager_comment,
            finance_comment=r.finance_comment,
            submitted_at=r.submitted_at,
            approved_at=r.approved_at,
            paid_at=r.paid_at,
            payment_method=r.payment_method,
            payment_date=r.payment_date,
            payment_proof_ref=r.payment_proof_ref,
            created_at=r.created_at,
            updated_at=r.updated_at,
            allowed_actions=allowed_actions(r.status),
        )


class HistoryEntryResponse(BaseModel):
    sequence: int | None
    actor_id: str
    action: Action
    old_status: RequestStatus | None
    new_status: RequestStatus
    comment: str | None
    created_at: datetime

    @classmethod
    def from_domain(cls, e: HistoryEntry) -> HistoryEntryResponse:
        return cls(
            sequence=e.sequence,
            actor_id=e.actor_id,
            action=e.action,
            old_status=e.old_status,
            new_status=e.new_status,
            comment=e.comment,
            created_at=e.created_at,
        )


@router.post("", response_model=RequestResponse, status_code=HTTP_201_CREATED)
async def create_request(
    body: CreateRequestBody,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
) -> RequestResponse:
    draft = DraftFields(
        title=body.title,
        amount=body.amount,
        expense_type=body.expense_type,
        expense_date=body.expense_date,
        description=body.description,
        cost_center_id=body.cost_center_id,
        receipt_refs=tuple(body.receipt_refs),
    )
    try:
        created = await engine.create_draft(actor_id=principal.subject, draft=draft)
    except WorkflowError as e:
        raise to_http_error(e) from e
    return RequestResponse.from_domain(created)


@router.get("", response_model=list[RequestResponse])
async def list_my_requests(
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
) -> list[RequestResponse]:
    return [RequestResponse.from_domain(r) for r in await engine.list_own(principal.subject)]


@router.get("/queues/manager", response_model=list[RequestResponse])
async def manager_queue(
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
) -> list[RequestResponse]:
    return [RequestResponse.from_domain(r) for r in await engine.manager_queue(principal.subject)]


@router.get("/queues/finance", response_model=list[RequestResponse])
async def finance_queue(
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
) -> list[RequestResponse]:
    try:
        queued = await engine.finance_queue(principal.subject)
    except WorkflowError as e:
        raise to_http_error(e) from e
    return [RequestResponse.from_domain(r) for r in queued]


@router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
    settings: Settings = Depends(settings_dep),
) -> RequestResponse:
    try:
        found = await engine.get_request(request_id, principal.subject)
    except WorkflowError as e:
        raise await request_http_error(
            e, engine=engine, request_id=request_id, actor_id=principal.subject, settings=settings
        ) from e
    return RequestResponse.from_domain(found)


@router.get("/{request_id}/history", response_model=list[HistoryEntryResponse])
async def get_history(
    request_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
    settings: Settings = Depends(settings_dep),
) -> list[HistoryEntryResponse]:
    # Oldest first, i.e. replay order.
    try:
        entries = await engine.history(request_id, principal.subject)
    except WorkflowError as e:
        raise await request_http_error(
            e, engine=engine, request_id=request_id, actor_id=principal.subject, settings=settings
        ) from e
    return [HistoryEntryResponse.from_domain(e) for e in entries]


@router.post("/{request_id}/transitions", response_model=RequestResponse)
async def apply_transition(
    request_id: uuid.UUID,
    body: TransitionBody,
    principal: Principal = Depends(get_principal),
    engine: WorkflowEngine = Depends(workflow_engine),
    settings: Settings = Depends(settings_dep),
) -> RequestResponse:
    fields = TransitionFields(
        comment=body.comment,
        payment_method=body.payment_method,
        payment_date=body.payment_date,
        payment_proof_ref=body.payment_proof_ref,
    )
    try:
        updated = await engine.apply_transition(request_id, body.action, principal.subject, fields)
    except WorkflowError as e:
        raise await request_http_error(
            e, engine=engine, request_id=request_id, actor_id=principal.subject, settings=settings
        ) from e
    return RequestResponse.from_domain(updated)


# --- Module Notes -----------------------------------------------------------
# This router carries no workflow rules; every decision is the engine's.
