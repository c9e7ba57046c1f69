"""
reimbursement_workflow.workflow.ports

Interfaces the engine consumes from its collaborators.

Responsibilities:
- Declare the role resolver, request store, history ledger and notification gateway.
- Declare the unit of work that makes a store write and a ledger append atomic.
- Define the notification event handed to the gateway after commit.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from types import TracebackType
from typing import Any, Protocol

from reimbursement_workflow.workflow.types import (
    Action,
    HistoryEntry,
    ReimbursementRequest,
    RequestStatus,
    Role,
)


class RoleResolver(Protocol):
    async def roles_of(self, identity: str) -> frozenset[Role]: ...

    async def is_manager_of(self, manager_id: str, submitter_id: str) -> bool: ...

    async def submitters_of(self, manager_id: str) -> frozenset[str]: ...


class RequestStore(Protocol):
    async def get(self, request_id: uuid.UUID) -> tuple[ReimbursementRequest, int] | None: ...

    async def insert(self, request: ReimbursementRequest) -> None: ...

    async def compare_and_swap(
        self, request_id: uuid.UUID, version: int, new_request: ReimbursementRequest
    ) -> bool: ...

    async def list_for_submitter(self, submitter_id: str) -> list[ReimbursementRequest]: ...

    async def list_by_status(
        self,
        statuses: Collection[RequestStatus],
        *,
        submitter_ids: Collection[str] | None = None,
    ) -> list[ReimbursementRequest]: ...


class HistoryLedger(Protocol):
    async def append(self, entry: HistoryEntry) -> HistoryEntry: ...

    async def list_for_request(self, request_id: uuid.UUID) -> list[HistoryEntry]: ...


class UnitOfWork(Protocol):
    """
    One transaction. Leaving the context without `commit()` discards every write made
    through `requests` and `history`.
    """

    requests: RequestStore
    history: HistoryLedger

    async def __aenter__(self) -> UnitOfWork: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


UnitOfWorkFactory = Callable[[], UnitOfWork]


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    request_id: uuid.UUID
    action: Action
    old_status: RequestStatus | None
    new_status: RequestStatus
    actor_id: str
    comment: str | None
    submitter_id: str
    title: str
    amount: Decimal
    # Mail template key understood by the external mailer.
    template: str
    occurred_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "request_id": str(self.request_id),
            "action": self.action.value,
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value,
            "actor_id": self.actor_id,
            "comment": self.comment,
            "submitter_id": self.submitter_id,
            "title": self.title,
            "amount": str(self.amount),
            "template": self.template,
            "occurred_at": self.occurred_at.isoformat(),
        }


class NotificationGateway(Protocol):
    async def send(self, event: NotificationEvent) -> None: ...


# --- Module Notes -----------------------------------------------------------
# SQL implementations live in `db.repositories` and `db.uow`; gateways live in
# `notifications`. Tests substitute in-memory fakes for all of them.
