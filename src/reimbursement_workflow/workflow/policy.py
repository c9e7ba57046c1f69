"""
reimbursement_workflow.workflow.policy

Auto-approval policy evaluated on `submit`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from reimbursement_workflow.workflow.types import ReimbursementRequest


@dataclass(frozen=True, slots=True)
class AutoApproval:
    comment: str


@dataclass(frozen=True, slots=True)
class AutoApprovalPolicy:
    """
    Requests strictly below `threshold` skip manager review. A threshold of zero (or less)
    disables the policy.
    """

    threshold: Decimal = Decimal("0")

    @property
    def enabled(self) -> bool:
        return self.threshold > 0

    def evaluate(self, request: ReimbursementRequest) -> AutoApproval | None:
        if not self.enabled or request.amount >= self.threshold:
            return None
        return AutoApproval(
            comment=(
                f"Auto-approved: amount {request.amount} is below the "
                f"manager review threshold of {self.threshold}"
            )
        )
