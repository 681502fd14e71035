"""Verification of Slack request signatures.

Slack signs every request with HMAC-SHA256 over ``v0:{timestamp}:{body}``
using the app's signing secret and sends the result as
``X-Slack-Signature: v0=<hex>`` alongside ``X-Slack-Request-Timestamp``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Callable, Optional, Union

from ..constants import MAX_REQUEST_AGE_SECONDS, SIGNATURE_VERSION

logger = logging.getLogger(__name__)

Body = Union[str, bytes]


class SignatureVerifier:
    """Authenticates inbound requests against the signing secret."""

    def __init__(
        self,
        signing_secret: str,
        max_age: int = MAX_REQUEST_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not signing_secret:
            raise ValueError("signing_secret is required")
        self._secret = signing_secret.encode("utf-8")
        self.max_age = max_age
        self._clock = clock

    def compute_signature(self, timestamp: str, body: Body) -> str:
        """Return the expected ``v0=<hex>`` signature for a request."""
        raw = body.encode("utf-8") if isinstance(body, str) else body
        base = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + raw
        digest = hmac.new(self._secret, base, hashlib.sha256).hexdigest()
        return f"{SIGNATURE_VERSION}={digest}"

    def _timestamp_valid(self, timestamp: str) -> bool:
        try:
            request_time = int(timestamp)
        except (TypeError, ValueError):
            logger.warning(f"Invalid request timestamp: {timestamp!r}")
            return False
        age = abs(int(self._clock()) - request_time)
        if age > self.max_age:
            logger.warning(f"Request timestamp outside replay window: {age}s")
            return False
        return True

    def verify(
        self,
        timestamp: Optional[str],
        signature: Optional[str],
        body: Optional[Body],
    ) -> bool:
        """Return ``True`` only for a fresh request with a matching signature."""
        if timestamp is None or signature is None or body is None:
            logger.warning("Missing timestamp, signature or body for verification")
            return False

        if not self._timestamp_valid(timestamp):
            return False

        expected = self.compute_signature(timestamp, body)
        valid = hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
        if not valid:
            logger.warning("Request signature mismatch")
        else:
            logger.debug("Request signature verified")
        return valid
