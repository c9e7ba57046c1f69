"""
reimbursement_workflow.auth

Authentication package.

Responsibilities:
- JWT helpers and validation.
- FastAPI dependencies that turn a bearer token into a `Principal`.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Authentication only answers "who is calling"; what they may do to a request is decided
# by the workflow engine through its role resolver.
