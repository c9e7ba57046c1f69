"""
reimbursement_workflow.notifications.gateways

Notification gateway implementations handed to the workflow engine.

Responsibilities:
- `LoggingNotificationGateway`: emit each event as a structured log line.
- `WebhookNotificationGateway`: POST each event to an external mailer/notifier,
  authenticated with a short-lived service JWT.
- Translate transport errors into `NotificationFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import httpx

from reimbursement_workflow.auth.jwt import JwtConfig, issue_token
from reimbursement_workflow.observability.logging import get_logger
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.errors import NotificationFailure
from reimbursement_workflow.workflow.ports import NotificationEvent

log = get_logger(__name__)


class LoggingNotificationGateway:
    async def send(self, event: NotificationEvent) -> None:
        log.info("notification", **event.to_payload())


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    # Identity the receiving notifier sees on our calls.
    subject: str = "reimbursement-workflow"
    roles: tuple[str, ...] = ("internal_system",)


class WebhookNotificationGateway:
    """
    Boundary to the external notification service.

    Delivery is best-effort: one POST per event, no retries here. Retrying or queueing
    belongs to the receiving service.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        url: str | None = None,
        identity: ServiceIdentity | None = None,
    ) -> None:
        target = url or settings.notification_webhook_url
        if not target:
            raise ValueError("notification webhook url is not configured")
        self._settings = settings
        self._http = http
        self._url = target
        self._identity = identity or ServiceIdentity()

    def _authz(self) -> dict[str, str]:
        token = issue_token(
            cfg=JwtConfig.from_settings(self._settings),
            subject=self._identity.subject,
            roles=list(self._identity.roles),
            ttl=timedelta(minutes=5),
        )
        return {"Authorization": f"Bearer {token}"}

    async def send(self, event: NotificationEvent) -> None:
        try:
            r = await self._http.post(
                self._url,
                headers=self._authz(),
                json=event.to_payload(),
                timeout=self._settings.notification_timeout_seconds,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationFailure(f"notification delivery failed: {e}") from e


def build_gateway(
    settings: Settings, http: httpx.AsyncClient | None
) -> LoggingNotificationGateway | WebhookNotificationGateway:
    if settings.notification_webhook_url and http is not None:
        return WebhookNotificationGateway(settings=settings, http=http)
    return LoggingNotificationGateway()


# --- Module Notes -----------------------------------------------------------
# Production deployments typically point the webhook at a mail service that renders
# the `template` key of each event.
