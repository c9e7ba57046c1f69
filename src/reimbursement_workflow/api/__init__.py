"""
reimbursement_workflow.api

HTTP API package for the reimbursement workflow service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, request/response models and error mapping.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer should remain thin: request validation + auth + delegation to the engine.
