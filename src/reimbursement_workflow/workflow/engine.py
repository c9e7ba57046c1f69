"""
reimbursement_workflow.workflow.engine

Workflow engine for reimbursement requests.

Responsibilities:
- Validate a requested transition (status table, actor gate, guards).
- Apply it with a compare-and-swap write plus one ledger entry in a single unit of work.
- Retry the whole transition on a version conflict, up to a bounded number of attempts.
- Emit one notification per committed transition, outside the unit of work.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from reimbursement_workflow.observability.logging import get_logger
from reimbursement_workflow.workflow.audit import AuditRecorder
from reimbursement_workflow.workflow.errors import (
    Conflict,
    GuardViolation,
    NotFound,
    Unauthorized,
    WorkflowError,
)
from reimbursement_workflow.workflow.policy import AutoApprovalPolicy
from reimbursement_workflow.workflow.ports import (
    NotificationEvent,
    NotificationGateway,
    RoleResolver,
    UnitOfWorkFactory,
)
from reimbursement_workflow.workflow.transitions import TransitionRule, actor_passes, find_rule
from reimbursement_workflow.workflow.types import (
    Action,
    ActorContext,
    DraftFields,
    HistoryEntry,
    PaymentMethod,
    ReimbursementRequest,
    RequestStatus,
    Role,
    TransitionFields,
)

log = get_logger(__name__)

_TEMPLATES: dict[Action, str] = {
    Action.create_draft: "created",
    Action.submit: "submitted",
    Action.manager_approve: "approved_by_manager",
    Action.manager_reject: "rejected_by_manager",
    Action.manager_request_changes: "adjustment_requested",
    Action.finance_approve: "approved_by_finance",
    Action.finance_reject: "rejected_by_finance",
    Action.mark_paid: "marked_as_paid",
}

_READER_ROLES = frozenset({Role.finance, Role.admin, Role.director})
_FINANCE_ROLES = frozenset({Role.finance, Role.admin})
_MANAGER_QUEUE = (RequestStatus.pending_manager,)
# Awaiting a finance decision, then payment.
_FINANCE_QUEUE = (RequestStatus.pending_finance, RequestStatus.approved)
_CENTS = Decimal("0.01")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


@dataclass(frozen=True, slots=True)
class _Applied:
    request: ReimbursementRequest
    entry: HistoryEntry
    event: NotificationEvent


class WorkflowEngine:
    def __init__(
        self,
        *,
        uow_factory: UnitOfWorkFactory,
        roles: RoleResolver,
        notifier: NotificationGateway,
        policy: AutoApprovalPolicy | None = None,
        max_attempts: int = 3,
        max_request_amount: Decimal = Decimal("0"),
        require_receipt: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._uow_factory = uow_factory
        self._roles = roles
        self._notifier = notifier
        self._policy = policy or AutoApprovalPolicy()
        self._max_attempts = max_attempts
        self._max_request_amount = max_request_amount
        self._require_receipt = require_receipt
        self._clock = clock

    # -- writes ---------------------------------------------------------------

    async def create_draft(self, *, actor_id: str, draft: DraftFields) -> ReimbursementRequest:
        rule = find_rule(Action.create_draft, None)
        actor = ActorContext(actor_id=actor_id, roles=await self._roles.roles_of(actor_id))
        if not actor_passes(rule, actor):
            raise Unauthorized(actor_id=actor_id, action=Action.create_draft)
        title = _clean(draft.title)
        if title is None:
            raise GuardViolation("title")
        if draft.amount <= 0:
            raise GuardViolation("amount", "must be greater than zero")

        now = self._clock()
        request = ReimbursementRequest(
            id=uuid.uuid4(),
            submitter_id=actor_id,
            title=title,
            amount=draft.amount.quantize(_CENTS),
            expense_type=draft.expense_type,
            expense_date=draft.expense_date,
            status=rule.to_status,
            created_at=now,
            updated_at=now,
            description=_clean(draft.description),
            cost_center_id=draft.cost_center_id,
            receipt_refs=tuple(draft.receipt_refs),
        )
        async with self._uow_factory() as uow:
            await uow.requests.insert(request)
            entry = await AuditRecorder(uow.history).record(
                request_id=request.id,
                actor_id=actor_id,
                action=Action.create_draft,
                old_status=None,
                new_status=request.status,
                comment=None,
                at=now,
            )
            await uow.commit()

        log.info("draft_created", request_id=str(request.id), actor_id=actor_id)
        await self._notify(self._event(request, entry))
        return request

    async def apply_transition(
        self,
        request_id: uuid.UUID,
        action: Action,
        actor_id: str,
        fields: TransitionFields | None = None,
    ) -> ReimbursementRequest:
        """
        Apply `action` to the request on behalf of `actor_id`.

        Returns the updated request; raises a `WorkflowError` subclass otherwise. On a version
        conflict the transition is re-validated from scratch against the fresh row, so a
        loser of a race usually ends in `IllegalTransition` rather than `Conflict`.
        """

        fields = fields or TransitionFields()
        for attempt in range(1, self._max_attempts + 1):
            try:
                applied = await self._attempt(request_id, action, actor_id, fields)
            except WorkflowError as e:
                log.info(
                    "transition_rejected",
                    request_id=str(request_id),
                    action=action.value,
                    actor_id=actor_id,
                    code=e.code,
                    attempt=attempt,
                )
                raise
            if applied is None:
                log.info(
                    "transition_conflict",
                    request_id=str(request_id),
                    action=action.value,
                    attempt=attempt,
                )
                continue

            log.info(
                "transition_applied",
                request_id=str(request_id),
                action=action.value,
                actor_id=actor_id,
                old_status=applied.entry.old_status,
                new_status=applied.entry.new_status,
                attempt=attempt,
            )
            await self._notify(applied.event)
            return applied.request

        raise Conflict(request_id=request_id, attempts=self._max_attempts)

    async def _attempt(
        self,
        request_id: uuid.UUID,
        action: Action,
        actor_id: str,
        fields: TransitionFields,
    ) -> _Applied | None:
        async with self._uow_factory() as uow:
            loaded = await uow.requests.get(request_id)
            if loaded is None:
                raise NotFound(request_id)
            current, version = loaded

            actor = await self._actor_context(actor_id, current)
            rule = find_rule(action, current.status)
            if not actor_passes(rule, actor):
                raise Unauthorized(actor_id=actor_id, action=action)

            comment = _clean(fields.comment)
            payment_method = self._check_guards(rule, current, fields, comment)

            now = self._clock()
            new_status = rule.to_status
            entry_comment = comment
            if action is Action.submit:
                auto = self._policy.evaluate(current)
                if auto is not None and rule.shortcut_status is not None:
                    new_status = rule.shortcut_status
                    entry_comment = auto.comment if comment is None else f"{comment}\n{auto.comment}"

            updated = self._mutate(
                current,
                action=action,
                new_status=new_status,
                comment=comment,
                fields=fields,
                payment_method=payment_method,
                now=now,
            )
            if not await uow.requests.compare_and_swap(request_id, version, updated):
                await uow.rollback()
                return None

            entry = await AuditRecorder(uow.history).record(
                request_id=request_id,
                actor_id=actor_id,
                action=action,
                old_status=current.status,
                new_status=new_status,
                comment=entry_comment,
                at=now,
            )
            await uow.commit()

        return _Applied(request=updated, entry=entry, event=self._event(updated, entry))

    async def _actor_context(self, actor_id: str, request: ReimbursementRequest) -> ActorContext:
        roles = await self._roles.roles_of(actor_id)
        is_owner = actor_id == request.submitter_id
        is_manager = (
            False if is_owner else await self._roles.is_manager_of(actor_id, request.submitter_id)
        )
        return ActorContext(
            actor_id=actor_id,
            roles=roles,
            is_owner=is_owner,
            is_manager_of_submitter=is_manager,
        )

    def _check_guards(
        self,
        rule: TransitionRule,
        request: ReimbursementRequest,
        fields: TransitionFields,
        comment: str | None,
    ) -> PaymentMethod | None:
        if rule.comment_required and comment is None:
            raise GuardViolation("comment")
        if rule.action is Action.submit:
            self._check_submittable(request)
        if not rule.payment_required:
            return None

        raw_method = _clean(fields.payment_method)
        if raw_method is None:
            raise GuardViolation("payment_method")
        try:
            method = PaymentMethod(raw_method)
        except ValueError:
            raise GuardViolation("payment_method", f"unknown payment method '{raw_method}'") from None
        if fields.payment_date is None:
            raise GuardViolation("payment_date")
        return method

    def _check_submittable(self, request: ReimbursementRequest) -> None:
        if _clean(request.title) is None:
            raise GuardViolation("title")
        if request.amount <= 0:
            raise GuardViolation("amount", "must be greater than zero")
        if self._max_request_amount > 0 and request.amount > self._max_request_amount:
            raise GuardViolation("amount", f"exceeds the maximum of {self._max_request_amount}")
        if self._require_receipt and not request.receipt_refs:
            raise GuardViolation("receipt_refs", "at least one receipt is required")

    @staticmethod
    def _mutate(
        current: ReimbursementRequest,
        *,
        action: Action,
        new_status: RequestStatus,
        comment: str | None,
        fields: TransitionFields,
        payment_method: PaymentMethod | None,
        now: datetime,
    ) -> ReimbursementRequest:
        changes: dict[str, object] = {"status": new_status, "updated_at": now}

        if action is Action.submit and current.submitted_at is None:
            changes["submitted_at"] = now
        if action in (
            Action.manager_approve,
            Action.manager_reject,
            Action.manager_request_changes,
        ) and comment is not None:
            changes["manager_comment"] = comment
        if action in (
            Action.finance_approve,
            Action.finance_reject,
            Action.mark_paid,
        ) and comment is not None:
            changes["finance_comment"] = comment
        if new_status is RequestStatus.approved and current.approved_at is None:
            changes["approved_at"] = now
        if new_status is RequestStatus.paid and current.paid_at is None:
            changes["paid_at"] = now
            changes["payment_method"] = payment_method
            changes["payment_date"] = fields.payment_date
            changes["payment_proof_ref"] = _clean(fields.payment_proof_ref)

        return dataclasses.replace(current, **changes)

    def _event(self, request: ReimbursementRequest, entry: HistoryEntry) -> NotificationEvent:
        template = _TEMPLATES[entry.action]
        if entry.action is Action.submit and entry.new_status is RequestStatus.pending_finance:
            template = "auto_approved"
        return NotificationEvent(
            request_id=request.id,
            action=entry.action,
            old_status=entry.old_status,
            new_status=entry.new_status,
            actor_id=entry.actor_id,
            comment=entry.comment,
            submitter_id=request.submitter_id,
            title=request.title,
            amount=request.amount,
            template=template,
            occurred_at=entry.created_at,
        )

    async def _notify(self, event: NotificationEvent) -> None:
        # Post-commit and best-effort: a gateway outage must never undo a transition.
        try:
            await self._notifier.send(event)
        except Exception as e:
            log.warning(
                "notification_failed",
                request_id=str(event.request_id),
                template=event.template,
                error=str(e),
            )

    # -- reads ----------------------------------------------------------------

    async def get_request(self, request_id: uuid.UUID, actor_id: str) -> ReimbursementRequest:
        async with self._uow_factory() as uow:
            loaded = await uow.requests.get(request_id)
        if loaded is None:
            raise NotFound(request_id)
        request, _ = loaded
        await self._ensure_can_read(actor_id, request)
        return request

    async def history(self, request_id: uuid.UUID, actor_id: str) -> list[HistoryEntry]:
        async with self._uow_factory() as uow:
            loaded = await uow.requests.get(request_id)
            if loaded is None:
                raise NotFound(request_id)
            await self._ensure_can_read(actor_id, loaded[0])
            return await AuditRecorder(uow.history).entries_for(request_id)

    async def can_read(self, request_id: uuid.UUID, actor_id: str) -> bool:
        """False for unknown ids too, so callers can answer both cases alike."""

        async with self._uow_factory() as uow:
            loaded = await uow.requests.get(request_id)
        return loaded is not None and await self._may_read(actor_id, loaded[0])

    async def list_own(self, actor_id: str) -> list[ReimbursementRequest]:
        async with self._uow_factory() as uow:
            return await uow.requests.list_for_submitter(actor_id)

    async def manager_queue(self, actor_id: str) -> list[ReimbursementRequest]:
        """
        Requests waiting for `actor_id`'s manager decision, oldest submission first.

        Admins see every pending request; anyone else sees those of the submitters linked
        to them, which is empty for non-managers.
        """

        submitters: frozenset[str] | None = None
        if Role.admin not in await self._roles.roles_of(actor_id):
            submitters = await self._roles.submitters_of(actor_id)
            if not submitters:
                return []
        async with self._uow_factory() as uow:
            return await uow.requests.list_by_status(_MANAGER_QUEUE, submitter_ids=submitters)

    async def finance_queue(self, actor_id: str) -> list[ReimbursementRequest]:
        roles = await self._roles.roles_of(actor_id)
        if not roles & _FINANCE_ROLES:
            raise Unauthorized(actor_id=actor_id)
        async with self._uow_factory() as uow:
            return await uow.requests.list_by_status(_FINANCE_QUEUE)

    async def _ensure_can_read(self, actor_id: str, request: ReimbursementRequest) -> None:
        if not await self._may_read(actor_id, request):
            raise Unauthorized(actor_id=actor_id)

    async def _may_read(self, actor_id: str, request: ReimbursementRequest) -> bool:
        if actor_id == request.submitter_id:
            return True
        if await self._roles.roles_of(actor_id) & _READER_ROLES:
            return True
        return await self._roles.is_manager_of(actor_id, request.submitter_id)


# --- Module Notes -----------------------------------------------------------
# Side effects per applied transition: one compare-and-swap write, one ledger append,
# one notification attempt. A lost compare-and-swap rolls back and re-runs the attempt.
