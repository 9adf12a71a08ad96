"""Process-wide relay state: the webhook event log and the current credential.

One ``RelayState`` is built at startup and handed to every component that
needs it. Request handlers all run on one event loop, and every mutation here
completes without awaiting, so no locking is needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TokenTier(str, Enum):
    SHORT_LIVED = "short_lived"
    LONG_LIVED = "long_lived"


class AuthStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_CALLBACK = "awaiting_callback"
    SHORT_LIVED = "short_lived"
    LONG_LIVED = "long_lived"


@dataclass(frozen=True)
class LoggedEvent:
    channel: str
    payload: dict[str, Any]


class EventLog:
    """Newest-first, unbounded log of accepted webhook payloads."""

    def __init__(self) -> None:
        self._entries: list[LoggedEvent] = []

    def prepend(self, channel: str, payload: dict[str, Any]) -> None:
        self._entries.insert(0, LoggedEvent(channel=channel, payload=payload))

    def snapshot(self) -> list[dict[str, Any]]:
        """Return the payloads, newest first."""
        return [entry.payload for entry in self._entries]

    def entries(self) -> list[LoggedEvent]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class Credential:
    """The single current user token. Last write wins."""

    def __init__(self) -> None:
        self._token: str | None = None
        self._tier: TokenTier | None = None
        self._awaiting_callback = False

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def tier(self) -> TokenTier | None:
        return self._tier

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def stage(self) -> AuthStage:
        if self._tier is TokenTier.LONG_LIVED:
            return AuthStage.LONG_LIVED
        if self._tier is TokenTier.SHORT_LIVED:
            return AuthStage.SHORT_LIVED
        if self._awaiting_callback:
            return AuthStage.AWAITING_CALLBACK
        return AuthStage.UNAUTHENTICATED

    def begin_login(self) -> None:
        self._awaiting_callback = True

    def abandon_login(self) -> None:
        self._awaiting_callback = False

    def set(self, token: str, tier: TokenTier) -> None:
        if not token:
            raise ValueError("token must be a non-empty string")
        self._token = token
        self._tier = tier
        self._awaiting_callback = False


@dataclass
class RelayState:
    events: EventLog = field(default_factory=EventLog)
    credential: Credential = field(default_factory=Credential)
