"""
reimbursement_workflow.db.uow

SQLAlchemy-backed unit of work for the workflow engine.

Responsibilities:
- Open one async session per transition attempt.
- Expose the request store and history ledger bound to that session, so the
  compare-and-swap write and the ledger append commit (or roll back) together.
"""

from __future__ import annotations

from types import TracebackType

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reimbursement_workflow.db.repositories.history import HistoryRepo
from reimbursement_workflow.db.repositories.requests import RequestRepo


class SqlUnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: AsyncSession | None = None

    async def __aenter__(self) -> SqlUnitOfWork:
        self._session = self._session_factory()
        self.requests = RequestRepo(self._session)
        self.history = HistoryRepo(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        session = self._require_session()
        try:
            # Anything not committed explicitly is discarded.
            if session.in_transaction():
                await session.rollback()
        finally:
            await session.close()
            self._session = None

    async def commit(self) -> None:
        await self._require_session().commit()

    async def rollback(self) -> None:
        await self._require_session().rollback()

    def _require_session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("unit of work used outside 'async with'")
        return self._session


def sql_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    def _factory() -> SqlUnitOfWork:
        return SqlUnitOfWork(session_factory)

    return _factory
