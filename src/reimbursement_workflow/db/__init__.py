"""
reimbursement_workflow.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM rows, engine/session setup, repositories and the SQL unit of work.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The workflow core never imports from here; `services.workflow_service` wires these
# implementations into the engine's ports.
