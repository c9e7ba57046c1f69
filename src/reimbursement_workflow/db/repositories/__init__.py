"""
reimbursement_workflow.db.repositories

Repository package.

Responsibilities:
- Group data-access repositories for requests, history and the user directory.
"""

# Package marker; repositories are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Repositories are intentionally thin; transition rules belong in `workflow.engine`.
