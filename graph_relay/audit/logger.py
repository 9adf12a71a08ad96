"""Relay audit trail: numbered, hash-chained JSON Lines.

Every record carries ``seq`` (1-based, contiguous) and ``prev_hash``, the
SHA-256 of the previous line. Webhook records name their channel and OAuth
records the credential stage they left behind. The file has one writer: the
relay process, whose handlers all run on a single event loop.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from graph_relay.models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass
class ChainValidationResult:
    valid: bool
    entries: int = 0
    broken_at_line: int | None = None
    reason: str | None = None  # "malformed" | "sequence" | "hash"


def _line_hash(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def _audit_lines(log_path: Path) -> list[str]:
    return [line for line in log_path.read_text().splitlines() if line.strip()]


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check numbering and hash links; report the first line that breaks either."""
    lines = _audit_lines(log_path)
    prev_hash: str | None = None
    for number, line in enumerate(lines, start=1):
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            return ChainValidationResult(False, len(lines), number, "malformed")
        if record.get("seq") != number:
            return ChainValidationResult(False, len(lines), number, "sequence")
        if record.get("prev_hash") != prev_hash:
            return ChainValidationResult(False, len(lines), number, "hash")
        prev_hash = _line_hash(line)
    return ChainValidationResult(True, len(lines))


class AuditLogger:
    """Writes relay audit events, resuming the chain of an existing file."""

    def __init__(self, log_path: str) -> None:
        self.log_path = Path(log_path)
        self._seq = 0
        self._prev_hash: str | None = None
        if self.log_path.exists():
            lines = _audit_lines(self.log_path)
            if lines:
                self._seq = json.loads(lines[-1])["seq"]
                self._prev_hash = _line_hash(lines[-1])
                logger.info("Resuming audit trail %s at seq %d", self.log_path, self._seq)

    @property
    def seq(self) -> int:
        return self._seq

    def log(self, event: AuditEvent) -> None:
        record = {"seq": self._seq + 1, **json.loads(event.model_dump_json())}
        record["prev_hash"] = self._prev_hash
        line = json.dumps(record, separators=(",", ":"))

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a") as f:
            f.write(line + "\n")

        self._seq += 1
        self._prev_hash = _line_hash(line)
