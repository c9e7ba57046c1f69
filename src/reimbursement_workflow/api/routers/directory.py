from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY

from reimbursement_workflow.api.deps import db_session
from reimbursement_workflow.auth.deps import require_roles
from reimbursement_workflow.db.repositories.directory import DirectoryRepo
from reimbursement_workflow.workflow.types import Role

router = APIRouter(
    prefix="/v1/directory",
    tags=["directory"],
    dependencies=[Depends(require_roles("admin"))],
)


class RolesBody(BaseModel):
    roles: list[Role] = Field(default_factory=list)


class ManagerBody(BaseModel):
    manager_id: str | None = Field(default=None, max_length=256)


class DirectoryEntryResponse(BaseModel):
    user_id: str
    roles: list[Role]
    manager_id: str | None


async def _entry(repo: DirectoryRepo, user_id: str) -> DirectoryEntryResponse:
    return DirectoryEntryResponse(
        user_id=user_id,
        roles=sorted(await repo.roles_of(user_id)),
        manager_id=await repo.manager_of(user_id),
    )


@router.get("/{user_id}", response_model=DirectoryEntryResponse)
async def get_entry(
    user_id: str,
    session: AsyncSession = Depends(db_session),
) -> DirectoryEntryResponse:
    return await _entry(DirectoryRepo(session), user_id)


@router.put("/{user_id}/roles", response_model=DirectoryEntryResponse)
async def set_roles(
    user_id: str,
    body: RolesBody,
    session: AsyncSession = Depends(db_session),
) -> DirectoryEntryResponse:
    repo = DirectoryRepo(session)
    await repo.set_roles(user_id, body.roles)
    await session.commit()
    return await _entry(repo, user_id)


@router.put("/{user_id}/manager", response_model=DirectoryEntryResponse)
async def set_manager(
    user_id: str,
    body: ManagerBody,
    session: AsyncSession = Depends(db_session),
) -> DirectoryEntryResponse:
    if body.manager_id == user_id:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY, detail="A user cannot manage themselves"
        )
    repo = DirectoryRepo(session)
    await repo.set_manager(user_id, body.manager_id)
    await session.commit()
    return await _entry(repo, user_id)
