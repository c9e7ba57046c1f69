"""
reimbursement_workflow.workflow.transitions

The canonical transition table and the pure helpers built on it.

Responsibilities:
- Declare who may move a request from which status to which (`TRANSITIONS`).
- Look up the rule for `(action, current status)`.
- Evaluate a rule's actor gate against an `ActorContext`.
- Replay a history sequence through the table to reconstruct a status.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from reimbursement_workflow.workflow.errors import IllegalTransition
from reimbursement_workflow.workflow.types import (
    Action,
    ActorContext,
    HistoryEntry,
    RequestStatus,
    Role,
)


class Gate(enum.StrEnum):
    # Who may fire a rule. Admin passes every gate except `owner`.
    submitter = "submitter"
    owner = "owner"
    line_manager = "line_manager"
    finance = "finance"


@dataclass(frozen=True, slots=True)
class TransitionRule:
    action: Action
    gate: Gate
    from_statuses: frozenset[RequestStatus]
    to_status: RequestStatus
    comment_required: bool = False
    payment_required: bool = False
    # Alternative target a policy may route to (auto-approval on submit).
    shortcut_status: RequestStatus | None = None

    def reaches(self, status: RequestStatus) -> bool:
        return status == self.to_status or (
            self.shortcut_status is not None and status == self.shortcut_status
        )


TRANSITIONS: tuple[TransitionRule, ...] = (
    TransitionRule(
        action=Action.create_draft,
        gate=Gate.submitter,
        from_statuses=frozenset(),
        to_status=RequestStatus.draft,
    ),
    TransitionRule(
        action=Action.submit,
        gate=Gate.owner,
        from_statuses=frozenset({RequestStatus.draft, RequestStatus.changes_requested}),
        to_status=RequestStatus.pending_manager,
        shortcut_status=RequestStatus.pending_finance,
    ),
    TransitionRule(
        action=Action.manager_approve,
        gate=Gate.line_manager,
        from_statuses=frozenset({RequestStatus.pending_manager}),
        to_status=RequestStatus.pending_finance,
    ),
    TransitionRule(
        action=Action.manager_reject,
        gate=Gate.line_manager,
        from_statuses=frozenset({RequestStatus.pending_manager}),
        to_status=RequestStatus.rejected,
        comment_required=True,
    ),
    TransitionRule(
        action=Action.manager_request_changes,
        gate=Gate.line_manager,
        from_statuses=frozenset({RequestStatus.pending_manager}),
        to_status=RequestStatus.changes_requested,
        comment_required=True,
    ),
    TransitionRule(
        action=Action.finance_approve,
        gate=Gate.finance,
        from_statuses=frozenset({RequestStatus.pending_finance}),
        to_status=RequestStatus.approved,
    ),
    TransitionRule(
        action=Action.finance_reject,
        gate=Gate.finance,
        from_statuses=frozenset({RequestStatus.pending_finance}),
        to_status=RequestStatus.rejected,
        comment_required=True,
    ),
    TransitionRule(
        action=Action.mark_paid,
        gate=Gate.finance,
        from_statuses=frozenset({RequestStatus.approved}),
        to_status=RequestStatus.paid,
        payment_required=True,
    ),
)

_BY_ACTION: dict[Action, TransitionRule] = {rule.action: rule for rule in TRANSITIONS}


def find_rule(action: Action, current: RequestStatus | None) -> TransitionRule:
    """
    Return the rule that lets `action` fire from `current`.

    `current=None` means the request does not exist yet; only `create_draft` accepts that.
    Raises `IllegalTransition` for every pair the table does not list.
    """

    rule = _BY_ACTION.get(action)
    if rule is None:
        raise IllegalTransition(current_status=current, action=action)
    if current is None:
        if rule.from_statuses:
            raise IllegalTransition(current_status=current, action=action)
        return rule
    if current not in rule.from_statuses:
        raise IllegalTransition(current_status=current, action=action)
    return rule


def allowed_actions(current: RequestStatus) -> list[Action]:
    return [rule.action for rule in TRANSITIONS if current in rule.from_statuses]


def actor_passes(rule: TransitionRule, actor: ActorContext) -> bool:
    if rule.gate is Gate.owner:
        return actor.is_owner
    if actor.is_admin:
        return True
    if rule.gate is Gate.submitter:
        return Role.submitter in actor.roles
    if rule.gate is Gate.line_manager:
        return actor.is_manager_of_submitter
    if rule.gate is Gate.finance:
        return Role.finance in actor.roles
    return False


def replay_status(entries: Iterable[HistoryEntry]) -> RequestStatus:
    """
    Fold a request's ledger, oldest first, through the table.

    The first entry must be the `create_draft` record; every later entry must start where
    the previous one ended and be reachable by its action's rule.
    """

    current: RequestStatus | None = None
    for entry in entries:
        if entry.old_status != current:
            raise IllegalTransition(current_status=current, action=entry.action)
        rule = find_rule(entry.action, current)
        if not rule.reaches(entry.new_status):
            raise IllegalTransition(current_status=current, action=entry.action)
        current = entry.new_status
    if current is None:
        raise ValueError("empty history")
    return current


# --- Module Notes -----------------------------------------------------------
# This table is the single source of truth for who may do what. Guards that depend on
# runtime settings (amount ceilings, receipts) are evaluated by the engine.
