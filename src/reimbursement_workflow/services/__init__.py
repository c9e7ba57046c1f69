"""
reimbursement_workflow.services

Service-layer package.

Responsibilities:
- Wire persistence and gateway implementations into the workflow engine.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services should be pure Python and easily testable with fake clients/sessions.
