"""Tests for webhook ingestion and the subscription handshake."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from graph_relay.models import AuditEventType
from graph_relay.state import EventLog
from graph_relay.webhook.ingest import WebhookIngest
from graph_relay.webhook.models import Channel
from graph_relay.webhook.signature import SignatureVerifier
from tests.conftest import APP_SECRET, VERIFY_TOKEN, sign_body


def _make_ingest(**kwargs: Any) -> WebhookIngest:
    defaults: dict[str, Any] = {
        "verifier": SignatureVerifier(APP_SECRET),
        "verify_token": VERIFY_TOKEN,
        "event_log": EventLog(),
    }
    defaults.update(kwargs)
    return WebhookIngest(**defaults)


def _signed_headers(body: bytes) -> dict[str, str]:
    return {"x-hub-signature": sign_body(body)}


class TestChallenge:
    @pytest.mark.parametrize("challenge", ["1158201444", "", "with spaces & symbols"])
    def test_subscribe_with_matching_token_echoes_challenge(self, challenge: str) -> None:
        result = _make_ingest().handle_challenge({
            "hub.mode": "subscribe",
            "hub.verify_token": VERIFY_TOKEN,
            "hub.challenge": challenge,
        })
        assert result.status_code == 200
        assert result.content == challenge

    def test_missing_challenge_echoes_empty_string(self) -> None:
        result = _make_ingest().handle_challenge({
            "hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN,
        })
        assert result.status_code == 200
        assert result.content == ""

    def test_wrong_token_rejected(self) -> None:
        result = _make_ingest().handle_challenge({
            "hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "c",
        })
        assert result.status_code == 400

    def test_wrong_mode_rejected(self) -> None:
        result = _make_ingest().handle_challenge({
            "hub.mode": "unsubscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "c",
        })
        assert result.status_code == 400

    def test_empty_params_rejected(self) -> None:
        assert _make_ingest().handle_challenge({}).status_code == 400

    def test_challenge_outcomes_are_audited(self, mock_audit_logger: MagicMock) -> None:
        ingest = _make_ingest(audit_logger=mock_audit_logger)
        ingest.handle_challenge({"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN})
        ingest.handle_challenge({"hub.mode": "subscribe", "hub.verify_token": "x"})
        types = [c.args[0].event_type for c in mock_audit_logger.log.call_args_list]
        assert types == [AuditEventType.CHALLENGE_ACCEPTED, AuditEventType.CHALLENGE_REJECTED]


class TestVerifiedChannel:
    def test_valid_signature_recorded_at_front(self) -> None:
        log = EventLog()
        ingest = _make_ingest(event_log=log)
        first = json.dumps({"entry": [1]}).encode()
        second = json.dumps({"entry": [2]}).encode()

        assert ingest.ingest(Channel.FACEBOOK, first, _signed_headers(first)).status_code == 200
        assert ingest.ingest(Channel.FACEBOOK, second, _signed_headers(second)).status_code == 200

        assert log.snapshot() == [{"entry": [2]}, {"entry": [1]}]
        assert log.entries()[0].channel == "facebook"

    def test_invalid_signature_rejected_and_not_recorded(self) -> None:
        log = EventLog()
        result = _make_ingest(event_log=log).ingest(
            Channel.FACEBOOK, b'{"a": 1}', {"x-hub-signature": "sha1=bad"},
        )
        assert result.status_code == 401
        assert result.accepted is False
        assert len(log) == 0

    def test_missing_signature_rejected(self) -> None:
        log = EventLog()
        result = _make_ingest(event_log=log).ingest(Channel.FACEBOOK, b'{"a": 1}', {})
        assert result.status_code == 401
        assert len(log) == 0

    def test_sha256_configuration_reads_sha256_header(self) -> None:
        body = b'{"a": 1}'
        ingest = _make_ingest(verifier=SignatureVerifier(APP_SECRET, "sha256"))
        headers = {"x-hub-signature-256": sign_body(body, algorithm="sha256")}
        assert ingest.ingest(Channel.FACEBOOK, body, headers).status_code == 200

    def test_rejection_is_audited(self, mock_audit_logger: MagicMock) -> None:
        _make_ingest(audit_logger=mock_audit_logger).ingest(Channel.FACEBOOK, b"{}", {})
        event = mock_audit_logger.log.call_args.args[0]
        assert event.event_type == AuditEventType.WEBHOOK_REJECTED
        assert event.channel == "facebook"
        assert event.details == {"reason": "invalid_signature"}


class TestUnverifiedChannels:
    @pytest.mark.parametrize("channel", [Channel.INSTAGRAM, Channel.THREADS])
    def test_accepted_without_signature(self, channel: Channel) -> None:
        log = EventLog()
        result = _make_ingest(event_log=log).ingest(channel, b'{"field": "mentions"}', {})
        assert result.status_code == 200
        assert log.snapshot() == [{"field": "mentions"}]

    def test_verify_all_channels_enforces_signature(self) -> None:
        log = EventLog()
        ingest = _make_ingest(event_log=log, verified_channels=set(Channel))
        assert ingest.ingest(Channel.THREADS, b"{}", {}).status_code == 401
        assert len(log) == 0


class TestBodyDecoding:
    def test_empty_body_recorded_as_empty_object(self) -> None:
        log = EventLog()
        assert _make_ingest(event_log=log).ingest(Channel.INSTAGRAM, b"", {}).status_code == 200
        assert log.snapshot() == [{}]

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'"text"'])
    def test_non_object_body_rejected(self, body: bytes) -> None:
        log = EventLog()
        result = _make_ingest(event_log=log).ingest(Channel.INSTAGRAM, body, {})
        assert result.status_code == 400
        assert len(log) == 0

    def test_signature_checked_before_decoding(self) -> None:
        """A malformed unsigned body on the verified channel is a 401, not a 400."""
        result = _make_ingest().ingest(Channel.FACEBOOK, b"not json", {})
        assert result.status_code == 401
