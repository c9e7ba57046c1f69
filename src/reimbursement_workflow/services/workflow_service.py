"""
reimbursement_workflow.services.workflow_service

Composition of the workflow engine from settings and infrastructure.

Responsibilities:
- Bind the SQL unit of work, SQL role resolver and notification gateway to the engine.
- Translate settings into engine policy (auto-approval threshold, submit guards, retries).
"""

from __future__ import annotations

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reimbursement_workflow.db.repositories.directory import SqlRoleResolver
from reimbursement_workflow.db.uow import sql_uow_factory
from reimbursement_workflow.notifications.gateways import build_gateway
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.engine import WorkflowEngine
from reimbursement_workflow.workflow.policy import AutoApprovalPolicy
from reimbursement_workflow.workflow.ports import NotificationGateway


def build_engine(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http: httpx.AsyncClient | None = None,
    notifier: NotificationGateway | None = None,
) -> WorkflowEngine:
    return WorkflowEngine(
        uow_factory=sql_uow_factory(session_factory),
        roles=SqlRoleResolver(session_factory),
        notifier=notifier or build_gateway(settings, http),
        policy=AutoApprovalPolicy(threshold=settings.auto_approve_below),
        max_attempts=settings.max_transition_attempts,
        max_request_amount=settings.max_request_amount,
        require_receipt=settings.require_receipt,
    )


# --- Module Notes -----------------------------------------------------------
# The engine is stateless apart from its collaborators, so the API builds it once at
# startup and shares it across requests.
