"""
tests.conftest

Shared fixtures: in-memory implementations of the workflow ports and a seeded directory.

Responsibilities:
- Provide fakes for the role resolver, unit of work (store + ledger) and notifier.
- Seed the cast used across scenarios: U1 submitter, M1 (U1's manager), M2 (unlinked
  manager), F1 finance, A1 admin, D1 director, X1 unrelated submitter.
"""

from __future__ import annotations

import asyncio
import dataclasses
import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from reimbursement_workflow.workflow.engine import WorkflowEngine
from reimbursement_workflow.workflow.errors import NotificationFailure
from reimbursement_workflow.workflow.policy import AutoApprovalPolicy
from reimbursement_workflow.workflow.ports import NotificationEvent
from reimbursement_workflow.workflow.types import (
    DraftFields,
    ExpenseType,
    HistoryEntry,
    ReimbursementRequest,
    Role,
)


class InMemoryDirectory:
    def __init__(self) -> None:
        self.roles: dict[str, set[Role]] = {}
        self.managers: dict[str, str] = {}

    def grant(self, user_id: str, *roles: Role) -> None:
        self.roles.setdefault(user_id, set()).update(roles)

    def link(self, submitter_id: str, manager_id: str) -> None:
        self.managers[submitter_id] = manager_id

    async def roles_of(self, identity: str) -> frozenset[Role]:
        # Yield to the loop so concurrent transitions interleave like real I/O.
        await asyncio.sleep(0)
        return frozenset(self.roles.get(identity, set()))

    async def is_manager_of(self, manager_id: str, submitter_id: str) -> bool:
        await asyncio.sleep(0)
        return self.managers.get(submitter_id) == manager_id

    async def submitters_of(self, manager_id: str) -> frozenset[str]:
        await asyncio.sleep(0)
        return frozenset(s for s, m in self.managers.items() if m == manager_id)


class InMemoryDatabase:
    """Committed state shared by every unit of work."""

    def __init__(self) -> None:
        self.requests: dict[uuid.UUID, tuple[ReimbursementRequest, int]] = {}
        self.history: list[HistoryEntry] = []
        self.cas_failures = 0
        self.forced_conflicts = 0
        self.fail_history_append = False
        self._seq = 0

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def entries_for(self, request_id: uuid.UUID) -> list[HistoryEntry]:
        return [e for e in self.history if e.request_id == request_id]


class _Store:
    def __init__(self, uow: FakeUnitOfWork) -> None:
        self._uow = uow
        self._db = uow.db

    async def get(self, request_id: uuid.UUID) -> tuple[ReimbursementRequest, int] | None:
        return self._db.requests.get(request_id)

    async def insert(self, request: ReimbursementRequest) -> None:
        self._uow.staged_inserts.append(request)

    async def compare_and_swap(
        self, request_id: uuid.UUID, version: int, new_request: ReimbursementRequest
    ) -> bool:
        if self._db.forced_conflicts > 0:
            self._db.forced_conflicts -= 1
            self._db.cas_failures += 1
            return False
        current = self._db.requests.get(request_id)
        if current is None or current[1] != version:
            self._db.cas_failures += 1
            return False
        # Applied immediately, like a row lock held until commit; undone on rollback.
        self._uow.undo.append((request_id, current))
        self._db.requests[request_id] = (new_request, version + 1)
        return True

    async def list_for_submitter(self, submitter_id: str) -> list[ReimbursementRequest]:
        rows = [r for r, _ in self._db.requests.values() if r.submitter_id == submitter_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def list_by_status(self, statuses, *, submitter_ids=None) -> list[ReimbursementRequest]:
        rows = [
            r
            for r, _ in self._db.requests.values()
            if r.status in statuses and (submitter_ids is None or r.submitter_id in submitter_ids)
        ]
        return sorted(rows, key=lambda r: (r.submitted_at or r.created_at, r.created_at))


class _Ledger:
    def __init__(self, uow: FakeUnitOfWork) -> None:
        self._uow = uow
        self._db = uow.db

    async def append(self, entry: HistoryEntry) -> HistoryEntry:
        if self._db.fail_history_append:
            raise RuntimeError("ledger unavailable")
        stored = dataclasses.replace(entry, sequence=self._db.next_seq())
        self._uow.staged_history.append(stored)
        return stored

    async def list_for_request(self, request_id: uuid.UUID) -> list[HistoryEntry]:
        return self._db.entries_for(request_id)


class FakeUnitOfWork:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def __aenter__(self) -> FakeUnitOfWork:
        self.undo: list[tuple[uuid.UUID, tuple[ReimbursementRequest, int]]] = []
        self.staged_inserts: list[ReimbursementRequest] = []
        self.staged_history: list[HistoryEntry] = []
        self.committed = False
        self.requests = _Store(self)
        self.history = _Ledger(self)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.committed:
            await self.rollback()

    async def commit(self) -> None:
        for request in self.staged_inserts:
            self.db.requests[request.id] = (request, 1)
        self.db.history.extend(self.staged_history)
        self.undo.clear()
        self.staged_inserts.clear()
        self.staged_history.clear()
        self.committed = True

    async def rollback(self) -> None:
        for request_id, previous in reversed(self.undo):
            self.db.requests[request_id] = previous
        self.undo.clear()
        self.staged_inserts.clear()
        self.staged_history.clear()


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def send(self, event: NotificationEvent) -> None:
        self.events.append(event)


class FailingNotifier:
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, event: NotificationEvent) -> None:
        self.attempts += 1
        raise NotificationFailure("mailer is down")


class SteppingClock:
    """Strictly increasing timestamps so ledger order is observable."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 8, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture
def directory() -> InMemoryDirectory:
    d = InMemoryDirectory()
    for user in ("U1", "X1", "M1", "M2", "F1", "A1"):
        d.grant(user, Role.submitter)
    d.grant("M1", Role.manager)
    d.grant("M2", Role.manager)
    d.grant("F1", Role.finance)
    d.grant("A1", Role.admin, Role.manager)
    d.grant("D1", Role.director)
    d.link("U1", "M1")
    d.link("X1", "M2")
    return d


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def uow_factory(db: InMemoryDatabase) -> Callable[[], FakeUnitOfWork]:
    return lambda: FakeUnitOfWork(db)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def make_engine(
    db: InMemoryDatabase, directory: InMemoryDirectory, notifier: RecordingNotifier
) -> Callable[..., WorkflowEngine]:
    def _make(
        *,
        threshold: str = "0",
        max_request_amount: str = "0",
        require_receipt: bool = False,
        max_attempts: int = 3,
        gateway=None,
    ) -> WorkflowEngine:
        return WorkflowEngine(
            uow_factory=lambda: FakeUnitOfWork(db),
            roles=directory,
            notifier=gateway or notifier,
            policy=AutoApprovalPolicy(threshold=Decimal(threshold)),
            max_attempts=max_attempts,
            max_request_amount=Decimal(max_request_amount),
            require_receipt=require_receipt,
            clock=SteppingClock(),
        )

    return _make


@pytest.fixture
def engine(make_engine: Callable[..., WorkflowEngine]) -> WorkflowEngine:
    return make_engine()


@pytest.fixture
def draft() -> Callable[..., DraftFields]:
    def _draft(amount: str = "500", **overrides) -> DraftFields:
        fields = {
            "title": "Client visit - Sao Paulo",
            "amount": Decimal(amount),
            "expense_type": ExpenseType.travel,
            "expense_date": date(2024, 1, 5),
            "description": "Taxi and lunch",
            "receipt_refs": ("receipts/U1/taxi.pdf",),
        }
        fields.update(overrides)
        return DraftFields(**fields)

    return _draft
