"""Shared Pydantic data models for graph-relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class AuditEventType(str, Enum):
    WEBHOOK_ACCEPTED = "webhook_accepted"
    WEBHOOK_REJECTED = "webhook_rejected"
    CHALLENGE_ACCEPTED = "challenge_accepted"
    CHALLENGE_REJECTED = "challenge_rejected"
    OAUTH_LOGIN = "oauth_login"
    TOKEN_EXCHANGE = "token_exchange"
    TOKEN_UPGRADE = "token_upgrade"
    REPORT_FETCH = "report_fetch"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Graph API Models ---


class UpstreamResult(BaseModel):
    """Outcome of a single Graph API call.

    ``ok`` is False when the HTTP status was not 2xx or the body carried an
    ``error`` key. ``data`` is whatever body was parsed, passed through as-is.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    status: int
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def access_token(self) -> str | None:
        token = self.data.get("access_token")
        return token if isinstance(token, str) and token else None


class NoLinkedAccount(BaseModel):
    """None of the user's pages is linked to an Instagram business account."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    error: str = "No Instagram business account is linked to this user's pages."
    reason: Literal["no_linked_account"] = "no_linked_account"


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    channel: str | None = None  # webhook channel
    stage: str | None = None  # credential stage after an OAuth event
    action: str
    result: str  # "success" | "failure" | "degraded"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
