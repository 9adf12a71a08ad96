"""Resolves a user token to the linked Instagram business account id."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from graph_relay.graph.client import GraphClient
from graph_relay.models import NoLinkedAccount, UpstreamResult

logger = logging.getLogger(__name__)

LINKED_ACCOUNT_FIELD = "instagram_business_account"


@dataclass(frozen=True)
class AccountResolution:
    account_id: str | None = None
    error: UpstreamResult | NoLinkedAccount | None = None

    @property
    def ok(self) -> bool:
        return self.account_id is not None


class AccountResolver:
    """Walks user token -> managed pages -> first linked business account.

    Pages are checked one at a time in the order Graph API returns them and
    the first match wins. Nothing is cached; every call re-resolves.
    """

    def __init__(self, client: GraphClient, graph_base_url: str) -> None:
        self._client = client
        self._graph = graph_base_url.rstrip("/")

    async def resolve(self, token: str) -> AccountResolution:
        pages = await self._client.get(
            f"{self._graph}/me/accounts", {"access_token": token},
        )
        if not pages.ok:
            return AccountResolution(error=pages)

        page_list = pages.data.get("data")
        if not isinstance(page_list, list):
            page_list = []
        for page in page_list:
            page_id = page.get("id") if isinstance(page, dict) else None
            if not page_id:
                continue
            result = await self._client.get(
                f"{self._graph}/{page_id}",
                {"fields": LINKED_ACCOUNT_FIELD, "access_token": token},
            )
            linked = result.data.get(LINKED_ACCOUNT_FIELD) if result.ok else None
            if isinstance(linked, dict) and linked.get("id"):
                return AccountResolution(account_id=str(linked["id"]))

        logger.info("No linked business account across %d page(s)", len(page_list))
        return AccountResolution(error=NoLinkedAccount())
