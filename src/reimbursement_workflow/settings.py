"""
reimbursement_workflow.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Enterprise pattern:
    - Strict env-driven configuration
    - Defaults safe for local dev
    - Single settings object injected across layers
    """

    model_config = SettingsConfigDict(env_prefix="RWF_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "reimbursement-workflow"
    log_level: str = "INFO"
    log_json: bool = True

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "reimbursement-workflow"
    jwt_audience: str = "reimbursement-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    jwt_leeway_seconds: int = Field(default=30, ge=0, le=300)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./reimbursements.db"

    # Workflow policy (0 disables the amount-based rules)
    auto_approve_below: Decimal = Field(default=Decimal("0"), ge=0)
    max_request_amount: Decimal = Field(default=Decimal("0"), ge=0)
    require_receipt: bool = False
    max_transition_attempts: int = Field(default=3, ge=1, le=10)

    # Notifications: without a webhook URL events are only logged.
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 5.0

    # Report forbidden requests as 404 so non-participants cannot probe for ids.
    conceal_unauthorized: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# auto_approve_below / max_request_amount / require_receipt mirror the system settings
# administrators used to edit at runtime; here they are deploy-time configuration.
