from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from reimbursement_workflow.auth.jwt import JwtConfig, decode_and_validate
from reimbursement_workflow.notifications.gateways import (
    LoggingNotificationGateway,
    WebhookNotificationGateway,
    build_gateway,
)
from reimbursement_workflow.settings import Settings
from reimbursement_workflow.workflow.errors import NotificationFailure
from reimbursement_workflow.workflow.ports import NotificationEvent
from reimbursement_workflow.workflow.types import Action, RequestStatus

_HOOK = "http://mailer.test/hooks/reimbursements"


def _event() -> NotificationEvent:
    return NotificationEvent(
        request_id=uuid.uuid4(),
        action=Action.manager_request_changes,
        old_status=RequestStatus.pending_manager,
        new_status=RequestStatus.changes_requested,
        actor_id="M1",
        comment="Attach the invoice",
        submitter_id="U1",
        title="Client visit",
        amount=Decimal("500.00"),
        template="adjustment_requested",
        occurred_at=datetime(2024, 1, 8, 9, 0, tzinfo=UTC),
    )


@pytest.mark.asyncio
async def test_webhook_posts_event_with_service_token() -> None:
    settings = Settings(env="test", notification_webhook_url=_HOOK)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    event = _event()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        await WebhookNotificationGateway(settings=settings, http=http).send(event)

    [request] = seen
    assert str(request.url) == _HOOK
    body = json.loads(request.content)
    assert body["template"] == "adjustment_requested"
    assert body["request_id"] == str(event.request_id)
    assert body["old_status"] == "pending_manager"
    assert body["amount"] == "500.00"

    scheme, token = request.headers["Authorization"].split(" ", 1)
    assert scheme == "Bearer"
    claims = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=token)
    assert claims["sub"] == "reimbursement-workflow"


@pytest.mark.asyncio
async def test_webhook_errors_become_notification_failures() -> None:
    settings = Settings(env="test", notification_webhook_url=_HOOK)

    def unavailable(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    for handler in (unavailable, unreachable):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            gateway = WebhookNotificationGateway(settings=settings, http=http)
            with pytest.raises(NotificationFailure):
                await gateway.send(_event())


@pytest.mark.asyncio
async def test_build_gateway_falls_back_to_logging() -> None:
    assert isinstance(build_gateway(Settings(env="test"), None), LoggingNotificationGateway)
    async with httpx.AsyncClient() as http:
        hooked = build_gateway(Settings(env="test", notification_webhook_url=_HOOK), http)
        assert isinstance(hooked, WebhookNotificationGateway)

    # Logging gateway never raises.
    await LoggingNotificationGateway().send(_event())


@pytest.mark.asyncio
async def test_webhook_requires_a_url() -> None:
    async with httpx.AsyncClient() as http:
        with pytest.raises(ValueError):
            WebhookNotificationGateway(settings=Settings(env="test"), http=http)
