"""
reimbursement_workflow.workflow.types

Domain types shared by the workflow engine and its ports.

Responsibilities:
- Define the closed enumerations (status, action, role, expense type, payment method).
- Define the immutable `ReimbursementRequest` aggregate and `HistoryEntry` record.
- Define the caller-supplied inputs (`DraftFields`, `TransitionFields`).
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal


class RequestStatus(enum.StrEnum):
    # Stored in DB and emitted in notifications; treat as stable contract.
    draft = "draft"
    pending_manager = "pending_manager"
    changes_requested = "changes_requested"
    pending_finance = "pending_finance"
    approved = "approved"
    rejected = "rejected"
    paid = "paid"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.rejected, RequestStatus.paid)


class Action(enum.StrEnum):
    create_draft = "create_draft"
    submit = "submit"
    manager_approve = "manager_approve"
    manager_reject = "manager_reject"
    manager_request_changes = "manager_request_changes"
    finance_approve = "finance_approve"
    finance_reject = "finance_reject"
    mark_paid = "mark_paid"


class Role(enum.StrEnum):
    submitter = "submitter"
    manager = "manager"
    finance = "finance"
    admin = "admin"
    director = "director"


class ExpenseType(enum.StrEnum):
    travel = "travel"
    meals = "meals"
    transport = "transport"
    lodging = "lodging"
    supplies = "supplies"
    services = "services"
    other = "other"


class PaymentMethod(enum.StrEnum):
    pix = "pix"
    bank_transfer = "bank_transfer"
    deposit = "deposit"
    check = "check"
    cash = "cash"


@dataclass(frozen=True, slots=True)
class ReimbursementRequest:
    """
    Aggregate root. Instances are immutable; the engine derives a new instance per
    transition with `dataclasses.replace` and hands it to the store.
    """

    id: uuid.UUID
    submitter_id: str
    title: str
    amount: Decimal
    expense_type: ExpenseType
    expense_date: date
    status: RequestStatus
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    cost_center_id: str | None = None
    receipt_refs: tuple[str, ...] = ()

    manager_comment: str | None = None
    finance_comment: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    payment_method: PaymentMethod | None = None
    payment_date: date | None = None
    payment_proof_ref: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    request_id: uuid.UUID
    actor_id: str
    action: Action
    old_status: RequestStatus | None
    new_status: RequestStatus
    comment: str | None
    created_at: datetime
    # Assigned by the ledger on append; orders entries sharing a timestamp.
    sequence: int | None = None


@dataclass(frozen=True, slots=True)
class DraftFields:
    """Descriptive fields supplied by the submitter when a draft is created."""

    title: str
    amount: Decimal
    expense_type: ExpenseType
    expense_date: date
    description: str | None = None
    cost_center_id: str | None = None
    receipt_refs: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TransitionFields:
    comment: str | None = None
    payment_method: str | None = None
    payment_date: date | None = None
    payment_proof_ref: str | None = None


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Actor identity as seen by the engine for a single request."""

    actor_id: str
    roles: frozenset[Role] = field(default_factory=frozenset)
    is_owner: bool = False
    is_manager_of_submitter: bool = False

    @property
    def is_admin(self) -> bool:
        return Role.admin in self.roles


# --- Module Notes -----------------------------------------------------------
# `submitted` and `pending_manager` are a single waiting state here; no caller
# needs to tell a direct submission from a resubmission apart.
