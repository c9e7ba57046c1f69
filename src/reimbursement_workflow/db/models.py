"""
reimbursement_workflow.db.models

Persistence schema for the reimbursement workflow.

Responsibilities:
- Define ORM rows for:
  - ReimbursementRequestRow: the request aggregate plus its optimistic `version`
  - HistoryEntryRow: append-only transition ledger
  - RoleAssignmentRow / ManagerLinkRow: read-only inputs to the role resolver
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid as SAUuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from reimbursement_workflow.db.base import Base
from reimbursement_workflow.workflow.types import (
    Action,
    ExpenseType,
    PaymentMethod,
    RequestStatus,
    Role,
)


def _enum(cls: type, name: str) -> Enum:
    # Store enum values (not member names) so the DB matches the wire contract.
    return Enum(cls, name=name, values_callable=lambda e: [m.value for m in e])


_STATUS = _enum(RequestStatus, "request_status")


class ReimbursementRequestRow(Base):
    __tablename__ = "reimbursement_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    submitter_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_type: Mapped[ExpenseType] = mapped_column(
        _enum(ExpenseType, "expense_type"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    cost_center_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    receipt_refs: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[RequestStatus] = mapped_column(_STATUS, nullable=False, index=True)
    manager_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    finance_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        _enum(PaymentMethod, "payment_method"), nullable=True
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_proof_ref: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Bumped by every compare-and-swap write; see RequestRepo.compare_and_swap.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_requests_submitter_created", "submitter_id", "created_at"),)


class HistoryEntryRow(Base):
    __tablename__ = "history_entries"

    # Integer key doubles as the ledger sequence (total order within equal timestamps).
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[uuid.UUID] = mapped_column(SAUuid(as_uuid=True), nullable=False, index=True)

    actor_id: Mapped[str] = mapped_column(String(256), nullable=False)
    action: Mapped[Action] = mapped_column(_enum(Action, "workflow_action"), nullable=False)
    old_status: Mapped[RequestStatus | None] = mapped_column(_STATUS, nullable=True)
    new_status: Mapped[RequestStatus] = mapped_column(_STATUS, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_history_request_created", "request_id", "created_at", "id"),)


class RoleAssignmentRow(Base):
    __tablename__ = "role_assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    role: Mapped[Role] = mapped_column(_enum(Role, "app_role"), nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_role_assignment"),)


class ManagerLinkRow(Base):
    __tablename__ = "manager_links"

    # One responsible manager per submitter.
    submitter_id: Mapped[str] = mapped_column(String(256), primary_key=True)
    manager_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)


# --- Module Notes -----------------------------------------------------------
# History rows are never updated or deleted by application code; only HistoryRepo.append
# writes to that table.
