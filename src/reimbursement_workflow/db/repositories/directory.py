"""
reimbursement_workflow.db.repositories.directory

Role assignments and manager links.

Responsibilities:
- `DirectoryRepo`: administrative writes (replace a user's roles, set a user's manager).
- `SqlRoleResolver`: the engine's read-only `RoleResolver`, one short session per lookup.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reimbursement_workflow.db.models import ManagerLinkRow, RoleAssignmentRow
from reimbursement_workflow.workflow.types import Role


class DirectoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def set_roles(self, user_id: str, roles: Iterable[Role]) -> frozenset[Role]:
        wanted = frozenset(roles)
        await self._session.execute(
            delete(RoleAssignmentRow).where(RoleAssignmentRow.user_id == user_id)
        )
        for role in sorted(wanted):
            self._session.add(RoleAssignmentRow(user_id=user_id, role=role))
        await self._session.flush()
        return wanted

    async def set_manager(self, submitter_id: str, manager_id: str | None) -> None:
        link = await self._session.get(ManagerLinkRow, submitter_id)
        if manager_id is None:
            if link is not None:
                await self._session.delete(link)
        elif link is None:
            self._session.add(ManagerLinkRow(submitter_id=submitter_id, manager_id=manager_id))
        else:
            link.manager_id = manager_id
        await self._session.flush()

    async def roles_of(self, user_id: str) -> frozenset[Role]:
        stmt = select(RoleAssignmentRow.role).where(RoleAssignmentRow.user_id == user_id)
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def manager_of(self, submitter_id: str) -> str | None:
        link = await self._session.get(ManagerLinkRow, submitter_id)
        return link.manager_id if link is not None else None

    async def reports_of(self, manager_id: str) -> frozenset[str]:
        stmt = select(ManagerLinkRow.submitter_id).where(ManagerLinkRow.manager_id == manager_id)
        return frozenset((await self._session.execute(stmt)).scalars().all())


class SqlRoleResolver:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def roles_of(self, identity: str) -> frozenset[Role]:
        async with self._session_factory() as session:
            return await DirectoryRepo(session).roles_of(identity)

    async def is_manager_of(self, manager_id: str, submitter_id: str) -> bool:
        async with self._session_factory() as session:
            return await DirectoryRepo(session).manager_of(submitter_id) == manager_id

    async def submitters_of(self, manager_id: str) -> frozenset[str]:
        async with self._session_factory() as session:
            return await DirectoryRepo(session).reports_of(manager_id)


# --- Module Notes -----------------------------------------------------------
# Role lookups run outside the transition's unit of work so they never hold locks on
# request rows.
