"""
reimbursement_workflow.workflow.errors

Error taxonomy raised by the workflow engine.

Responsibilities:
- One exception type per failure class, each with a stable `code`.
- Carry the structured details callers need (current status, missing field, attempts).
"""

from __future__ import annotations

import uuid
from typing import Any

from reimbursement_workflow.workflow.types import Action, RequestStatus


class WorkflowError(Exception):
    code = "workflow_error"
    retryable = False

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), "retryable": self.retryable}


class NotFound(WorkflowError):
    code = "not_found"

    def __init__(self, request_id: uuid.UUID) -> None:
        super().__init__(f"reimbursement request {request_id} not found")
        self.request_id = request_id


class IllegalTransition(WorkflowError):
    code = "illegal_transition"

    def __init__(self, *, current_status: RequestStatus | None, action: Action) -> None:
        shown = current_status.value if current_status is not None else "none"
        super().__init__(f"action '{action.value}' is not allowed from status '{shown}'")
        self.current_status = current_status
        self.action = action

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "current_status": self.current_status.value if self.current_status else None,
            "action": self.action.value,
        }


class Unauthorized(WorkflowError):
    code = "unauthorized"

    def __init__(self, *, actor_id: str, action: Action | None = None) -> None:
        # Message names the actor and action only; nothing about the request itself.
        what = action.value if action is not None else "read"
        super().__init__(f"actor '{actor_id}' may not perform '{what}'")
        self.actor_id = actor_id
        self.action = action


class GuardViolation(WorkflowError):
    code = "guard_violation"

    def __init__(self, field: str, reason: str = "required") -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field}


class Conflict(WorkflowError):
    code = "conflict"
    retryable = True

    def __init__(self, *, request_id: uuid.UUID, attempts: int) -> None:
        super().__init__(
            f"reimbursement request {request_id} changed concurrently; gave up after {attempts} attempts"
        )
        self.request_id = request_id
        self.attempts = attempts


class NotificationFailure(WorkflowError):
    """Raised by gateways; the engine logs it and never surfaces it to callers."""

    code = "notification_failure"
    retryable = True


# --- Module Notes -----------------------------------------------------------
# The API layer maps these to HTTP statuses in `api.errors`.
