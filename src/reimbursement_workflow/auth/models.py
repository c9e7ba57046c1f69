"""
reimbursement_workflow.auth.models

Authenticated caller identity injected into endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """
    `subject` is the identity the workflow engine acts for; `roles` are the claims carried
    by the bearer token.
    """

    subject: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles
