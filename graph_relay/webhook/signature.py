"""X-Hub signature verification for Meta webhook deliveries."""

from __future__ import annotations

import hashlib
import hmac

from graph_relay.config import SUPPORTED_SIGNATURE_ALGORITHMS

_HEADER_NAMES = {
    "sha1": "X-Hub-Signature",
    "sha256": "X-Hub-Signature-256",
}


class SignatureVerifier:
    """HMAC check of a raw request body against the shared app secret."""

    def __init__(self, secret: str, algorithm: str = "sha1") -> None:
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_SIGNATURE_ALGORITHMS:
            raise ValueError(f"unsupported signature algorithm: {algorithm}")
        self._secret = secret
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def header_name(self) -> str:
        return _HEADER_NAMES[self._algorithm]

    def sign(self, body: bytes) -> str:
        """Return the header value the provider would send for ``body``."""
        digest = hmac.new(
            self._secret.encode(), body, getattr(hashlib, self._algorithm),
        ).hexdigest()
        return f"{self._algorithm}={digest}"

    def verify(self, body: bytes, signature: str | None) -> bool:
        """Return True only for a present, well-formed, matching signature.

        Constant-time comparison via hmac.compare_digest, on bytes so that
        a latin-1 header value cannot raise.
        """
        if not self._secret or not signature:
            return False

        prefix = f"{self._algorithm}="
        signature = signature.strip()
        if not signature.startswith(prefix):
            return False

        return hmac.compare_digest(signature.encode(), self.sign(body).encode())
