"""OAuth login flow: dialog redirect, code exchange, long-lived token upgrade.

Stages: unauthenticated -> awaiting_callback -> short_lived -> long_lived.
The upgrade is best-effort; when it fails the short-lived token stays in
place and the login still counts as successful.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from graph_relay.audit.logger import AuditLogger
from graph_relay.config import RelaySettings
from graph_relay.graph.client import GraphClient, build_url
from graph_relay.models import AuditEvent, AuditEventType, RiskLevel
from graph_relay.state import Credential, TokenTier

logger = logging.getLogger(__name__)

SCOPES = (
    "instagram_basic",
    "instagram_manage_insights",
    "pages_show_list",
    "pages_read_engagement",
)
REPORT_ROUTES = ["/profile", "/insights"]


class MissingAppCredentialsError(Exception):
    """APP_ID or APP_SECRET is not configured."""

    def __init__(self) -> None:
        super().__init__("APP_ID/APP_SECRET missing from environment variables.")


@dataclass
class CallbackOutcome:
    status_code: int
    body: dict[str, Any]


class OAuthFlow:
    """Drives the authorization-code login and owns writes to the credential."""

    def __init__(
        self,
        settings: RelaySettings,
        client: GraphClient,
        credential: Credential,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._credential = credential
        self._audit = audit_logger

    @property
    def token_url(self) -> str:
        return f"{self._settings.graph_base_url}/oauth/access_token"

    def _require_app_credentials(self) -> None:
        if not self._settings.has_app_credentials:
            raise MissingAppCredentialsError()

    def login_url(self) -> str:
        """Return the provider dialog URL to redirect the browser to."""
        self._require_app_credentials()
        url = build_url(self._settings.dialog_url, {
            "client_id": self._settings.app_id,
            "redirect_uri": self._settings.callback_url,
            "scope": ",".join(SCOPES),
            "response_type": "code",
        })
        if not self._credential.is_authenticated:
            self._credential.begin_login()
        self._record(AuditEventType.OAUTH_LOGIN, "success")
        return url

    async def callback(self, code: str | None) -> CallbackOutcome:
        if not code:
            return CallbackOutcome(
                status_code=400,
                body={"ok": False, "error": "Missing 'code' in callback."},
            )
        self._require_app_credentials()

        short = await self._client.get(self.token_url, {
            "client_id": self._settings.app_id,
            "client_secret": self._settings.app_secret,
            "redirect_uri": self._settings.callback_url,
            "code": code,
        })
        if not short.ok or short.access_token is None:
            logger.warning("Code exchange failed with status %d", short.status)
            if not self._credential.is_authenticated:
                self._credential.abandon_login()
            self._record(AuditEventType.TOKEN_EXCHANGE, "failure", upstream_status=short.status)
            return CallbackOutcome(status_code=400, body=short.model_dump())

        self._credential.set(short.access_token, TokenTier.SHORT_LIVED)
        self._record(AuditEventType.TOKEN_EXCHANGE, "success")

        upgraded = await self._client.get(self.token_url, {
            "grant_type": "fb_exchange_token",
            "client_id": self._settings.app_id,
            "client_secret": self._settings.app_secret,
            "fb_exchange_token": short.access_token,
        })
        if upgraded.ok and upgraded.access_token is not None:
            self._credential.set(upgraded.access_token, TokenTier.LONG_LIVED)
            self._record(AuditEventType.TOKEN_UPGRADE, "success")
        else:
            logger.warning(
                "Long-lived token upgrade failed with status %d; keeping short-lived token",
                upgraded.status,
            )
            self._record(
                AuditEventType.TOKEN_UPGRADE, "degraded", upstream_status=upgraded.status,
            )

        return CallbackOutcome(status_code=200, body={
            "ok": True,
            "message": "Login complete",
            "token_tier": self._credential.stage.value,
            "next": list(REPORT_ROUTES),
        })

    def _record(self, event_type: AuditEventType, result: str, **details: object) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEvent(
            event_type=event_type,
            action=event_type.value,
            stage=self._credential.stage.value,
            result=result,
            risk_level=RiskLevel.INFO if result != "failure" else RiskLevel.MEDIUM,
            details=details or None,
        ))
