"""FastAPI application: webhook endpoints, OAuth login and report routes."""

from __future__ import annotations

import html
import json
import logging
import time
from collections.abc import Callable

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse

from graph_relay.audit.logger import AuditLogger
from graph_relay.config import RelaySettings
from graph_relay.graph.accounts import AccountResolver
from graph_relay.graph.client import GraphClient
from graph_relay.graph.reports import NotAuthenticatedError, ReportFetcher
from graph_relay.oauth.flow import MissingAppCredentialsError, OAuthFlow
from graph_relay.state import RelayState
from graph_relay.webhook.ingest import DEFAULT_VERIFIED_CHANNELS, WebhookIngest
from graph_relay.webhook.models import Channel
from graph_relay.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)

USEFUL_ROUTES = ("GET /auth/login", "GET /profile", "GET /insights")


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = RelaySettings.from_env()
    audit_logger = AuditLogger(settings.audit_log_path) if settings.audit_log_path else None
    return create_app(settings, audit_logger=audit_logger)


def create_app(
    settings: RelaySettings,
    state: RelayState | None = None,
    graph_transport: httpx.AsyncBaseTransport | None = None,
    audit_logger: AuditLogger | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Wire the relay components around one shared ``RelayState``."""
    if state is None:
        state = RelayState()
    if not settings.app_secret:
        logger.warning(
            "APP_SECRET is not set: signed webhook deliveries will all be rejected",
        )

    client = GraphClient(transport=graph_transport)
    resolver = AccountResolver(client, settings.graph_base_url)
    verified = set(Channel) if settings.verify_all_channels else DEFAULT_VERIFIED_CHANNELS
    ingest = WebhookIngest(
        SignatureVerifier(settings.app_secret, settings.signature_algorithm),
        settings.verify_token,
        state.events,
        verified_channels=verified,
        audit_logger=audit_logger,
    )
    oauth = OAuthFlow(settings, client, state.credential, audit_logger=audit_logger)
    reports = ReportFetcher(
        client,
        resolver,
        state.credential,
        settings.graph_base_url,
        clock=clock,
        audit_logger=audit_logger,
    )

    app = FastAPI(docs_url=None, redoc_url=None)
    app.state.relay = state

    @app.exception_handler(MissingAppCredentialsError)
    async def missing_credentials(request: Request, exc: MissingAppCredentialsError) -> JSONResponse:
        logger.error("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)

    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated(request: Request, exc: NotAuthenticatedError) -> JSONResponse:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=401)

    @app.get("/health")
    async def health() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/")
    async def status_page() -> HTMLResponse:
        entries = state.events.entries()
        updates = "\n".join(
            f"[{entry.channel}]\n{html.escape(json.dumps(entry.payload, indent=2))}"
            for entry in entries
        )
        routes = "\n".join(f"- {route}" for route in USEFUL_ROUTES)
        page = (
            "<pre>\n"
            f"Webhook updates (last {len(entries)}):\n"
            f"{updates}\n\n"
            f"Useful routes:\n{routes}\n"
            "</pre>"
        )
        return HTMLResponse(page)

    for channel in Channel:
        _register_channel(app, ingest, channel)

    @app.get("/auth/login")
    async def login() -> RedirectResponse:
        return RedirectResponse(oauth.login_url(), status_code=302)

    @app.get("/auth/callback")
    async def callback(code: str | None = None) -> JSONResponse:
        outcome = await oauth.callback(code)
        return JSONResponse(outcome.body, status_code=outcome.status_code)

    @app.get("/profile")
    async def profile() -> JSONResponse:
        outcome = await reports.profile()
        return JSONResponse(outcome.body, status_code=outcome.status_code)

    @app.get("/insights")
    async def insights() -> JSONResponse:
        outcome = await reports.insights()
        return JSONResponse(outcome.body, status_code=outcome.status_code)

    return app


def _register_channel(app: FastAPI, ingest: WebhookIngest, channel: Channel) -> None:
    path = f"/{channel.value}"

    async def verify(request: Request) -> Response:
        result = ingest.handle_challenge(
            request.query_params, source_ip=_client_ip(request),
        )
        if result.status_code != 200:
            return PlainTextResponse("Bad Request", status_code=result.status_code)
        return PlainTextResponse(result.content)

    async def receive(request: Request) -> Response:
        body = await request.body()
        result = ingest.ingest(
            channel, body, request.headers, source_ip=_client_ip(request),
        )
        if not result.accepted:
            return PlainTextResponse(result.error or "", status_code=result.status_code)
        return PlainTextResponse("OK")

    app.add_api_route(path, verify, methods=["GET"], name=f"{channel.value}_challenge")
    app.add_api_route(path, receive, methods=["POST"], name=f"{channel.value}_webhook")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
