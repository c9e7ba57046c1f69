"""
reimbursement_workflow.api.errors

Mapping from workflow errors to HTTP responses.

Responsibilities:
- Map each `WorkflowError` to a status code and a JSON detail.
- Hide the existence of requests the caller cannot read when `conceal_unauthorized` is on.
"""

from __future__ import annotations

import uuid

from fastapi import HTTPException
from starlette.status import (
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
)

from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.engine import WorkflowEngine
from reimbursement_workflow.workflow.errors import (
    GuardViolation,
    NotFound,
    Unauthorized,
    WorkflowError,
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Request not found")


def to_http_error(e: WorkflowError) -> HTTPException:
    # IllegalTransition and Conflict both map to 409; `retryable` in the body tells them apart.
    if isinstance(e, NotFound):
        return _not_found()
    if isinstance(e, Unauthorized):
        return HTTPException(status_code=HTTP_403_FORBIDDEN, detail=e.to_dict())
    if isinstance(e, GuardViolation):
        return HTTPException(status_code=HTTP_422_UNPROCESSABLE_ENTITY, detail=e.to_dict())
    return HTTPException(status_code=HTTP_409_CONFLICT, detail=e.to_dict())


async def request_http_error(
    e: WorkflowError,
    *,
    engine: WorkflowEngine,
    request_id: uuid.UUID,
    actor_id: str,
    settings: Settings,
) -> HTTPException:
    """
    Map an error raised while reading or acting on one request.

    With `conceal_unauthorized`, a caller who may not read the request gets the unknown-id
    response whatever the engine raised, so status and guard errors reveal nothing either.
    """

    if settings.conceal_unauthorized and not isinstance(e, NotFound):
        if not await engine.can_read(request_id, actor_id):
            return _not_found()
    return to_http_error(e)


# --- Module Notes -----------------------------------------------------------
# Drafts and queues are not tied to an existing request, so their errors go through
# `to_http_error` directly and an authorization failure there is always 403.
