"""Webhook ingestion for the facebook, instagram and threads channels.

Handles the Meta subscription handshake (GET) and event deliveries (POST):
signature verification for the verified channels, JSON decoding, and
recording into the shared event log.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping

from graph_relay.audit.logger import AuditLogger
from graph_relay.models import AuditEvent, AuditEventType, RiskLevel
from graph_relay.state import EventLog
from graph_relay.webhook.models import Channel, ChallengeResult, IngestResult, WebhookEvent
from graph_relay.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)

SUBSCRIBE_MODE = "subscribe"

# Only the facebook channel is signature-checked unless configured otherwise.
DEFAULT_VERIFIED_CHANNELS = frozenset({Channel.FACEBOOK})


class WebhookIngest:
    """Verifies and records inbound webhook notifications."""

    def __init__(
        self,
        verifier: SignatureVerifier,
        verify_token: str,
        event_log: EventLog,
        verified_channels: Iterable[Channel] = DEFAULT_VERIFIED_CHANNELS,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._verifier = verifier
        self._verify_token = verify_token
        self._events = event_log
        self._verified_channels = frozenset(verified_channels)
        self._audit = audit_logger

    @property
    def verified_channels(self) -> frozenset[Channel]:
        return self._verified_channels

    def handle_challenge(
        self, params: Mapping[str, str], source_ip: str | None = None,
    ) -> ChallengeResult:
        """Echo ``hub.challenge`` when mode is subscribe and the token matches."""
        mode = params.get("hub.mode")
        token = params.get("hub.verify_token")
        if mode == SUBSCRIBE_MODE and token == self._verify_token:
            self._record(AuditEventType.CHALLENGE_ACCEPTED, "success", RiskLevel.INFO, source_ip)
            return ChallengeResult(status_code=200, content=params.get("hub.challenge", ""))

        logger.warning("Webhook challenge rejected (mode=%r)", mode)
        self._record(AuditEventType.CHALLENGE_REJECTED, "failure", RiskLevel.MEDIUM, source_ip)
        return ChallengeResult(status_code=400)

    def ingest(
        self,
        channel: Channel,
        body: bytes,
        headers: Mapping[str, str],
        source_ip: str | None = None,
    ) -> IngestResult:
        """Verify (when required), decode and record one delivery.

        ``headers`` lookups use lower-case names, which is what Starlette's
        case-insensitive ``Headers`` and plain test dicts both accept.
        """
        if channel in self._verified_channels:
            signature = headers.get(self._verifier.header_name.lower())
            if not self._verifier.verify(body, signature):
                logger.warning(
                    "%s webhook: %s header not present or invalid",
                    channel.value, self._verifier.header_name,
                )
                self._record(
                    AuditEventType.WEBHOOK_REJECTED, "failure", RiskLevel.HIGH, source_ip,
                    channel=channel, reason="invalid_signature",
                )
                return IngestResult(
                    status_code=401, accepted=False, error="Invalid webhook signature",
                )
            logger.info("%s webhook: %s header validated", channel.value, self._verifier.header_name)

        event = _decode(body)
        if event is None:
            logger.warning("%s webhook: body is not a JSON object", channel.value)
            self._record(
                AuditEventType.WEBHOOK_REJECTED, "failure", RiskLevel.LOW, source_ip,
                channel=channel, reason="malformed_body",
            )
            return IngestResult(status_code=400, accepted=False, error="Malformed JSON body")

        logger.info("%s request body: %s", channel.value, event)
        self._events.prepend(channel.value, event)
        self._record(
            AuditEventType.WEBHOOK_ACCEPTED, "success", RiskLevel.INFO, source_ip,
            channel=channel,
        )
        return IngestResult(status_code=200, accepted=True)

    def _record(
        self,
        event_type: AuditEventType,
        result: str,
        risk_level: RiskLevel,
        source_ip: str | None,
        channel: Channel | None = None,
        **details: object,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEvent(
            event_type=event_type,
            source_ip=source_ip,
            channel=channel.value if channel is not None else None,
            action=event_type.value,
            result=result,
            risk_level=risk_level,
            details=details or None,
        ))


def _decode(body: bytes) -> WebhookEvent | None:
    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None
