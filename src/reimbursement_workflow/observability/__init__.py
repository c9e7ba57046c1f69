"""
reimbursement_workflow.observability

Structured logging setup and request-context propagation.
"""

# Package marker.
