"""Graph API client: signed-URL GET requests with a normalized result shape."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from graph_relay.models import UpstreamResult

logger = logging.getLogger(__name__)


def _query_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_url(base_url: str, params: Mapping[str, Any] | None = None) -> str:
    """Append every non-None entry of ``params`` to ``base_url`` as a query parameter."""
    url = httpx.URL(base_url)
    extra = {
        key: _query_value(value)
        for key, value in (params or {}).items()
        if value is not None
    }
    if extra:
        url = url.copy_merge_params(extra)
    return str(url)


class GraphClient:
    """Issues single-attempt GETs against the Graph API.

    Graph API reports logical errors inside 200 responses, so a call is a
    failure when the status is not 2xx *or* the body carries ``error``.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def get(
        self, base_url: str, params: Mapping[str, Any] | None = None,
    ) -> UpstreamResult:
        url = build_url(base_url, params)
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.get(url)
        except httpx.TransportError as exc:
            logger.warning("Graph API unreachable for %s: %s", base_url, exc)
            return UpstreamResult(
                ok=False,
                status=502,
                data={"error": {"type": "transport_error", "message": str(exc)}},
            )

        data = _parse_body(resp)
        if not resp.is_success or data.get("error"):
            logger.warning("Graph API call to %s failed with status %d", base_url, resp.status_code)
            return UpstreamResult(ok=False, status=resp.status_code, data=data)
        return UpstreamResult(ok=True, status=resp.status_code, data=data)


def _parse_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        parsed = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}
