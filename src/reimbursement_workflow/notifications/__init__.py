"""
reimbursement_workflow.notifications

Notification gateways (log and webhook) used after each committed transition.
"""

from reimbursement_workflow.notifications.gateways import (
    LoggingNotificationGateway,
    WebhookNotificationGateway,
    build_gateway,
)

__all__ = ["LoggingNotificationGateway", "WebhookNotificationGateway", "build_gateway"]
