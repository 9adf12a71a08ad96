"""Shared test fixtures for graph-relay."""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from graph_relay.audit.logger import AuditLogger
from graph_relay.config import RelaySettings
from graph_relay.models import AuditEvent, AuditEventType, RiskLevel

GRAPH = "https://graph.facebook.com/v19.0"
APP_SECRET = "test-app-secret"
VERIFY_TOKEN = "test-verify-token"


def make_settings(**kwargs: Any) -> RelaySettings:
    """Factory for RelaySettings with sensible defaults."""
    defaults: dict[str, Any] = {
        "app_secret": APP_SECRET,
        "verify_token": VERIFY_TOKEN,
        "app_id": "1234567890",
        "redirect_uri": "http://relay.test/auth/callback",
    }
    defaults.update(kwargs)
    return RelaySettings(**defaults)


def sign_body(body: bytes, secret: str = APP_SECRET, algorithm: str = "sha1") -> str:
    digest = hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.WEBHOOK_REJECTED,
        "action": "webhook_rejected",
        "result": "failure",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


class FakeGraph:
    """Stand-in Graph API behind an ``httpx.MockTransport``.

    Routes are keyed by URL path (``/v19.0/me/accounts``). A route value is
    either ``(status, body)`` or a callable taking the request and returning
    that tuple. Every request is recorded in ``requests``.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def on(
        self,
        path: str,
        response: tuple[int, Any] | Callable[[httpx.Request], tuple[int, Any]],
    ) -> FakeGraph:
        self.routes[f"/v19.0{path}"] = response
        return self

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"/v19.0{path}"]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": {"message": "unknown path"}})
        status, body = route(request) if callable(route) else route
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, content=json.dumps(body).encode())


def linked_graph() -> FakeGraph:
    """A Graph API with two pages, the second one linked to IG account 1784."""
    graph = FakeGraph()
    graph.on("/me/accounts", (200, {"data": [{"id": "p1"}, {"id": "p2"}]}))
    graph.on("/p1", (200, {"id": "p1"}))
    graph.on("/p2", (200, {"id": "p2", "instagram_business_account": {"id": "1784"}}))
    return graph


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)
