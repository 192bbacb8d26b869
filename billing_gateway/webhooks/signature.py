"""HMAC-SHA256 webhook signature verification."""

import hashlib
import hmac
import logging

from billing_gateway.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

# Only this many leading hex characters of a signature are ever logged
_LOG_PREFIX = 8


class SignatureVerifier:
    """Checks the provider's signature header against the raw request body.

    The secret is passed in explicitly so tests can use fixture secrets.
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret

    @property
    def configured(self) -> bool:
        return bool(self._secret)

    def compute(self, body: bytes) -> str:
        """Return the lowercase hex HMAC-SHA256 digest of ``body``."""
        if not self._secret:
            raise ConfigurationError("Webhook secret not configured")
        return hmac.new(self._secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def verify(self, body: bytes, signature: str | None) -> None:
        """Raise unless ``signature`` is the digest of ``body`` under the secret."""
        expected = self.compute(body)

        if not signature:
            logger.warning("Webhook signature header missing")
            raise AuthenticationError("Invalid webhook signature")

        received = signature.strip().lower().encode("utf-8")
        if not hmac.compare_digest(expected.encode("ascii"), received):
            logger.warning(
                f"Invalid webhook signature: expected {expected[:_LOG_PREFIX]}..., "
                f"received {signature[:_LOG_PREFIX]}..."
            )
            raise AuthenticationError("Invalid webhook signature")
