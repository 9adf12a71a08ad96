"""Data models for webhook ingestion."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# Provider-defined JSON object; no schema is enforced.
WebhookEvent = dict[str, Any]


class Channel(str, Enum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    THREADS = "threads"


@dataclass
class ChallengeResult:
    """Response to a subscription handshake (GET with hub.* params)."""

    status_code: int
    content: str = ""


@dataclass
class IngestResult:
    """Response to a webhook delivery (POST)."""

    status_code: int
    accepted: bool
    error: str | None = None
