"""Read-only Instagram reports: account profile and trailing 7-day insights."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from graph_relay.audit.logger import AuditLogger
from graph_relay.graph.accounts import AccountResolver
from graph_relay.graph.client import GraphClient
from graph_relay.models import (
    AuditEvent,
    AuditEventType,
    NoLinkedAccount,
    RiskLevel,
    UpstreamResult,
)
from graph_relay.state import Credential

logger = logging.getLogger(__name__)

PROFILE_FIELDS = "id,username,profile_picture_url"
INSIGHT_METRICS = "impressions,reach,profile_views"
INSIGHT_PERIOD = "day"
INSIGHT_WINDOW_SECONDS = 7 * 24 * 60 * 60


class NotAuthenticatedError(Exception):
    """Raised when a report is requested before any successful login."""


@dataclass
class ReportOutcome:
    status_code: int
    body: dict[str, Any]


def insights_window(now: int) -> tuple[int, int]:
    """Return ``(since, until)`` epoch seconds for the 7 days ending at ``now``."""
    return now - INSIGHT_WINDOW_SECONDS, now


class ReportFetcher:
    def __init__(
        self,
        client: GraphClient,
        resolver: AccountResolver,
        credential: Credential,
        graph_base_url: str,
        clock: Callable[[], float] = time.time,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._credential = credential
        self._graph = graph_base_url.rstrip("/")
        self._clock = clock
        self._audit = audit_logger

    async def profile(self) -> ReportOutcome:
        token = self._require_token()
        resolution = await self._resolver.resolve(token)
        if resolution.error is not None:
            return self._resolution_failed("profile", resolution.error)

        result = await self._client.get(
            f"{self._graph}/{resolution.account_id}",
            {"fields": PROFILE_FIELDS, "access_token": token},
        )
        return self._finish("profile", resolution.account_id, result, "profile")

    async def insights(self) -> ReportOutcome:
        token = self._require_token()
        resolution = await self._resolver.resolve(token)
        if resolution.error is not None:
            return self._resolution_failed("insights", resolution.error)

        since, until = insights_window(int(self._clock()))
        result = await self._client.get(
            f"{self._graph}/{resolution.account_id}/insights",
            {
                "metric": INSIGHT_METRICS,
                "period": INSIGHT_PERIOD,
                "since": since,
                "until": until,
                "access_token": token,
            },
        )
        return self._finish("insights", resolution.account_id, result, "insights_7d")

    def _require_token(self) -> str:
        token = self._credential.token
        if token is None:
            raise NotAuthenticatedError("Log in at /auth/login first.")
        return token

    def _resolution_failed(
        self, report: str, error: UpstreamResult | NoLinkedAccount,
    ) -> ReportOutcome:
        logger.warning("%s report: account resolution failed", report)
        self._record(report, "failure", reason=getattr(error, "reason", "upstream"))
        return ReportOutcome(status_code=400, body=error.model_dump())

    def _finish(
        self, report: str, account_id: str | None, result: UpstreamResult, key: str,
    ) -> ReportOutcome:
        if not result.ok:
            self._record(report, "failure", reason="upstream", upstream_status=result.status)
            return ReportOutcome(status_code=400, body=result.model_dump())
        self._record(report, "success")
        return ReportOutcome(
            status_code=200,
            body={"ok": True, "ig_user_id": account_id, key: result.data},
        )

    def _record(self, report: str, result: str, **details: object) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEvent(
            event_type=AuditEventType.REPORT_FETCH,
            action=report,
            result=result,
            risk_level=RiskLevel.INFO,
            details=details or None,
        ))
