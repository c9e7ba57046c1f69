"""
tests.test_sql_repositories

SQLAlchemy adapters against a file-backed SQLite database.

Responsibilities:
- Compare-and-swap semantics of `RequestRepo`.
- Ledger ordering and rollback behaviour of `SqlUnitOfWork`.
- Directory lookups used by the engine's role resolver.
- Review-queue queries and racing transitions on a real database.
"""

from __future__ import annotations

import asyncio
import dataclasses
import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from reimbursement_workflow.db.init_db import init_db
from reimbursement_workflow.db.repositories.directory import DirectoryRepo, SqlRoleResolver
from reimbursement_workflow.db.session import create_engine, create_sessionmaker
from reimbursement_workflow.db.uow import SqlUnitOfWork
from reimbursement_workflow.services.workflow_service import build_engine
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.errors import IllegalTransition
from reimbursement_workflow.workflow.types import (
    Action,
    DraftFields,
    ExpenseType,
    HistoryEntry,
    ReimbursementRequest,
    RequestStatus,
    Role,
    TransitionFields,
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'rwf.db'}")


@pytest_asyncio.fixture
async def sessionmaker(settings: Settings):
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


def _request(**overrides) -> ReimbursementRequest:
    now = datetime(2024, 1, 8, 9, 0, tzinfo=UTC)
    fields = {
        "id": uuid.uuid4(),
        "submitter_id": "U1",
        "title": "Hotel",
        "amount": Decimal("320.50"),
        "expense_type": ExpenseType.lodging,
        "expense_date": date(2024, 1, 5),
        "status": RequestStatus.draft,
        "created_at": now,
        "updated_at": now,
        "receipt_refs": ("receipts/U1/hotel.pdf",),
    }
    fields.update(overrides)
    return ReimbursementRequest(**fields)


@pytest.mark.asyncio
async def test_insert_and_get_round_trip(sessionmaker) -> None:
    req = _request()
    async with SqlUnitOfWork(sessionmaker) as uow:
        await uow.requests.insert(req)
        await uow.commit()

    async with SqlUnitOfWork(sessionmaker) as uow:
        loaded = await uow.requests.get(req.id)
    assert loaded is not None
    stored, version = loaded
    assert version == 1
    assert stored.amount == Decimal("320.50")
    assert stored.status is RequestStatus.draft
    assert stored.expense_type is ExpenseType.lodging
    assert stored.receipt_refs == ("receipts/U1/hotel.pdf",)


@pytest.mark.asyncio
async def test_compare_and_swap_rejects_stale_version(sessionmaker) -> None:
    req = _request()
    async with SqlUnitOfWork(sessionmaker) as uow:
        await uow.requests.insert(req)
        await uow.commit()

    submitted = dataclasses.replace(req, status=RequestStatus.pending_manager)
    async with SqlUnitOfWork(sessionmaker) as uow:
        assert await uow.requests.compare_and_swap(req.id, 1, submitted)
        await uow.commit()

    stale = dataclasses.replace(req, status=RequestStatus.rejected)
    async with SqlUnitOfWork(sessionmaker) as uow:
        assert not await uow.requests.compare_and_swap(req.id, 1, stale)

    async with SqlUnitOfWork(sessionmaker) as uow:
        stored, version = await uow.requests.get(req.id)
    assert stored.status is RequestStatus.pending_manager
    assert version == 2


@pytest.mark.asyncio
async def test_uncommitted_unit_of_work_is_discarded(sessionmaker) -> None:
    req = _request()
    async with SqlUnitOfWork(sessionmaker) as uow:
        await uow.requests.insert(req)
        await uow.commit()

    with pytest.raises(RuntimeError):
        async with SqlUnitOfWork(sessionmaker) as uow:
            swapped = dataclasses.replace(req, status=RequestStatus.pending_manager)
            assert await uow.requests.compare_and_swap(req.id, 1, swapped)
            raise RuntimeError("ledger unavailable")

    async with SqlUnitOfWork(sessionmaker) as uow:
        stored, version = await uow.requests.get(req.id)
        assert await uow.history.list_for_request(req.id) == []
    assert stored.status is RequestStatus.draft
    assert version == 1


@pytest.mark.asyncio
async def test_history_is_ordered_by_time_then_sequence(sessionmaker) -> None:
    request_id = uuid.uuid4()
    t0 = datetime(2024, 1, 8, 9, 0, tzinfo=UTC)

    def entry(action, old, new, at):
        return HistoryEntry(
            request_id=request_id,
            actor_id="U1",
            action=action,
            old_status=old,
            new_status=new,
            comment=None,
            created_at=at,
        )

    async with SqlUnitOfWork(sessionmaker) as uow:
        # Appended out of time order; reads come back oldest first.
        await uow.history.append(
            entry(
                Action.manager_approve,
                RequestStatus.pending_manager,
                RequestStatus.pending_finance,
                t0 + timedelta(seconds=2),
            )
        )
        first = await uow.history.append(entry(Action.create_draft, None, RequestStatus.draft, t0))
        await uow.history.append(
            entry(Action.submit, RequestStatus.draft, RequestStatus.pending_manager, t0 + timedelta(seconds=1))
        )
        await uow.commit()

    assert first.sequence is not None
    async with SqlUnitOfWork(sessionmaker) as uow:
        entries = await uow.history.list_for_request(request_id)
    assert [e.action for e in entries] == [
        Action.create_draft,
        Action.submit,
        Action.manager_approve,
    ]
    assert entries[0].old_status is None


@pytest.mark.asyncio
async def test_directory_and_role_resolver(sessionmaker) -> None:
    async with sessionmaker() as session:
        repo = DirectoryRepo(session)
        await repo.set_roles("M1", [Role.manager, Role.submitter])
        await repo.set_manager("U1", "M1")
        await session.commit()

    resolver = SqlRoleResolver(sessionmaker)
    assert await resolver.roles_of("M1") == frozenset({Role.manager, Role.submitter})
    assert await resolver.roles_of("nobody") == frozenset()
    assert await resolver.is_manager_of("M1", "U1")
    assert not await resolver.is_manager_of("M2", "U1")

    async with sessionmaker() as session:
        repo = DirectoryRepo(session)
        await repo.set_roles("M1", [Role.finance])
        await repo.set_manager("U1", None)
        await session.commit()

    assert await resolver.roles_of("M1") == frozenset({Role.finance})
    assert not await resolver.is_manager_of("M1", "U1")


@pytest.mark.asyncio
async def test_engine_on_sql_adapters(settings, sessionmaker, notifier) -> None:
    async with sessionmaker() as session:
        repo = DirectoryRepo(session)
        await repo.set_roles("U1", [Role.submitter])
        await repo.set_roles("M1", [Role.manager])
        await repo.set_roles("F1", [Role.finance])
        await repo.set_manager("U1", "M1")
        await session.commit()

    engine = build_engine(settings=settings, session_factory=sessionmaker, notifier=notifier)

    req = await engine.create_draft(
        actor_id="U1",
        draft=DraftFields(
            title="Conference ticket",
            amount=Decimal("899.90"),
            expense_type=ExpenseType.services,
            expense_date=date(2024, 2, 1),
        ),
    )
    await engine.apply_transition(req.id, Action.submit, "U1")
    await engine.apply_transition(req.id, Action.manager_approve, "M1")
    await engine.apply_transition(req.id, Action.finance_approve, "F1")
    req = await engine.apply_transition(
        req.id,
        Action.mark_paid,
        "F1",
        TransitionFields(payment_method="deposit", payment_date=date(2024, 2, 10)),
    )
    assert req.status is RequestStatus.paid

    stored = await engine.get_request(req.id, "U1")
    assert stored.status is RequestStatus.paid
    assert stored.payment_date == date(2024, 2, 10)
    history = await engine.history(req.id, "M1")
    assert [e.new_status for e in history] == [
        RequestStatus.draft,
        RequestStatus.pending_manager,
        RequestStatus.pending_finance,
        RequestStatus.approved,
        RequestStatus.paid,
    ]
    assert len(notifier.events) == 5

    async with SqlUnitOfWork(sessionmaker) as uow:
        _, version = await uow.requests.get(req.id)
    assert version == 5


@pytest.mark.asyncio
async def test_review_queue_query_filters_status_and_submitter(sessionmaker) -> None:
    t0 = datetime(2024, 1, 8, 9, 0, tzinfo=UTC)
    later = _request(status=RequestStatus.pending_manager, submitted_at=t0 + timedelta(hours=1))
    earlier = _request(status=RequestStatus.pending_manager, submitted_at=t0)
    other = _request(submitter_id="X1", status=RequestStatus.pending_manager, submitted_at=t0)
    draft = _request()
    finance = _request(status=RequestStatus.pending_finance, submitted_at=t0)
    async with SqlUnitOfWork(sessionmaker) as uow:
        for req in (later, earlier, other, draft, finance):
            await uow.requests.insert(req)
        await uow.commit()

    async with SqlUnitOfWork(sessionmaker) as uow:
        mine = await uow.requests.list_by_status(
            [RequestStatus.pending_manager], submitter_ids=["U1"]
        )
        everyone = await uow.requests.list_by_status([RequestStatus.pending_manager])
        nobody = await uow.requests.list_by_status(
            [RequestStatus.pending_manager], submitter_ids=[]
        )
        both = await uow.requests.list_by_status(
            [RequestStatus.pending_finance, RequestStatus.approved]
        )

    assert [r.id for r in mine] == [earlier.id, later.id]
    assert {r.id for r in everyone} == {earlier.id, later.id, other.id}
    assert nobody == []
    assert [r.id for r in both] == [finance.id]

    async with sessionmaker() as session:
        repo = DirectoryRepo(session)
        await repo.set_manager("U1", "M1")
        await repo.set_manager("X1", "M1")
        await repo.set_manager("Y1", "M2")
        await session.commit()
    resolver = SqlRoleResolver(sessionmaker)
    assert await resolver.submitters_of("M1") == frozenset({"U1", "X1"})
    assert await resolver.submitters_of("F1") == frozenset()


@pytest.mark.asyncio
async def test_sqlite_race_has_one_winner(settings, sessionmaker, notifier) -> None:
    async with sessionmaker() as session:
        repo = DirectoryRepo(session)
        await repo.set_roles("U1", [Role.submitter])
        await repo.set_roles("M1", [Role.manager])
        await repo.set_roles("A1", [Role.admin])
        await repo.set_manager("U1", "M1")
        await session.commit()

    engine = build_engine(settings=settings, session_factory=sessionmaker, notifier=notifier)

    for _ in range(5):
        req = await engine.create_draft(
            actor_id="U1",
            draft=DraftFields(
                title="Team dinner",
                amount=Decimal("240.00"),
                expense_type=ExpenseType.meals,
                expense_date=date(2024, 3, 1),
            ),
        )
        await engine.apply_transition(req.id, Action.submit, "U1")

        results = await asyncio.gather(
            engine.apply_transition(req.id, Action.manager_approve, "M1"),
            engine.apply_transition(
                req.id, Action.manager_reject, "A1", TransitionFields(comment="Not a team event")
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, BaseException)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], IllegalTransition)

        history = await engine.history(req.id, "U1")
        assert len(history) == 3
        assert history[-1].new_status is winners[0].status
        async with SqlUnitOfWork(sessionmaker) as uow:
            stored, version = await uow.requests.get(req.id)
        assert stored.status is winners[0].status
        assert version == 3
