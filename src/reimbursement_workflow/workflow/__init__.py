"""
reimbursement_workflow.workflow

Workflow core: transition table, engine, auto-approval policy and audit recorder.

Responsibilities:
- Own every rule about who may move a reimbursement request between statuses.
- Stay free of web and ORM imports so it can be exercised with in-memory fakes.
"""

from reimbursement_workflow.workflow.engine import WorkflowEngine
from reimbursement_workflow.workflow.errors import (
    Conflict,
    GuardViolation,
    IllegalTransition,
    NotFound,
    NotificationFailure,
    Unauthorized,
    WorkflowError,
)
from reimbursement_workflow.workflow.policy import AutoApprovalPolicy
from reimbursement_workflow.workflow.types import (
    Action,
    DraftFields,
    ExpenseType,
    HistoryEntry,
    PaymentMethod,
    ReimbursementRequest,
    RequestStatus,
    Role,
    TransitionFields,
)

__all__ = [
    "Action",
    "AutoApprovalPolicy",
    "Conflict",
    "DraftFields",
    "ExpenseType",
    "GuardViolation",
    "HistoryEntry",
    "IllegalTransition",
    "NotFound",
    "NotificationFailure",
    "PaymentMethod",
    "ReimbursementRequest",
    "RequestStatus",
    "Role",
    "TransitionFields",
    "Unauthorized",
    "WorkflowEngine",
    "WorkflowError",
]
