"""HMAC verification for inbound voice-platform webhooks."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

import structlog

SIGNATURE_HEADER = "X-Bland-Signature"

LOGGER = structlog.get_logger(__name__)


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class SignatureVerifier:
    """Checks ``X-Bland-Signature`` when a secret is configured and checks are not skipped."""

    def __init__(self, secret: Optional[str], *, skip: bool = False):
        self._secret = secret or None
        self._skip = skip
        if skip:
            LOGGER.warning("webhook.signature.disabled")
        elif not self._secret:
            LOGGER.warning("webhook.signature.no_secret")

    @property
    def enabled(self) -> bool:
        return bool(self._secret) and not self._skip

    def verify(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if not signature:
            return False
        expected = compute_signature(self._secret, body)
        return hmac.compare_digest(expected, signature.strip().lower())
