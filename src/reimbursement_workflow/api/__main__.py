"""
reimbursement_workflow.api.__main__

Run the service with `python -m reimbursement_workflow.api` (or the `reimbursement-workflow`
console script).
"""

from __future__ import annotations

import uvicorn

from reimbursement_workflow.api.app import create_app
from reimbursement_workflow.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog owns logging
    )


if __name__ == "__main__":
    main()
