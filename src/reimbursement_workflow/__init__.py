"""
reimbursement_workflow

Reimbursement request workflow service: approval state machine, audit ledger and
notification triggering behind a small HTTP API.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal to avoid import-time side effects across the codebase.
