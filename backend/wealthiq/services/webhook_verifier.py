"""
Clerk webhook signature verification.

SECURITY: All Clerk webhooks MUST be verified before processing.
Clerk delivers webhooks through Svix. A delivery carries three headers:
- svix-id: Unique message identifier
- svix-timestamp: Unix timestamp of the message
- svix-signature: Space-separated list of "v1,<base64 HMAC-SHA256>"

The signed content is "{svix_id}.{svix_timestamp}.{body}" keyed with the
base64-decoded part of the whsec_ secret.

Verification is pure: it never touches the database. The development
bypass (parse_unsigned) must be enabled explicitly and is refused in
production.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from svix.webhooks import Webhook, WebhookVerificationError

from wealthiq.config.settings import MAX_WEBHOOK_TOLERANCE_SECONDS, SyncSettings

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = MAX_WEBHOOK_TOLERANCE_SECONDS


class WebhookVerificationFailed(Exception):
    """Base exception for rejected webhook deliveries."""

    reason = "verification_failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SignatureInvalid(WebhookVerificationFailed):
    """Signature missing, malformed, or not matching the payload."""

    reason = "signature_invalid"


class SignatureExpired(WebhookVerificationFailed):
    """Timestamp outside the tolerance window (replay protection)."""

    reason = "signature_expired"


class PayloadMalformed(WebhookVerificationFailed):
    """Body is not a JSON event object or array of event objects."""

    reason = "payload_malformed"


def parse_events(payload: Any) -> List[Dict[str, Any]]:
    """
    Normalize a decoded webhook body into a list of event objects.

    Clerk sends one event per delivery; arrays are accepted as batches.
    """
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        if not all(isinstance(item, dict) for item in payload):
            raise PayloadMalformed("Webhook batch must contain only JSON objects")
        return list(payload)
    raise PayloadMalformed("Webhook payload must be a JSON object or array")


def _decode_json(body: bytes) -> Any:
    try:
        text = body.decode("utf-8") if isinstance(body, (bytes, bytearray)) else body
        return json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise PayloadMalformed(f"Invalid JSON payload: {e}")


class ClerkWebhookVerifier:
    """
    Verifies Svix-signed Clerk webhook deliveries.

    Usage:
        verifier = ClerkWebhookVerifier(secret="whsec_...")
        events = verifier.verify(body, svix_id, svix_timestamp, svix_signature)
    """

    def __init__(
        self,
        secret: Optional[str],
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        allow_unsigned: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        if tolerance_seconds > MAX_WEBHOOK_TOLERANCE_SECONDS:
            raise ValueError(
                f"tolerance_seconds must be at most {MAX_WEBHOOK_TOLERANCE_SECONDS}"
            )
        self._secret = secret
        self.tolerance_seconds = tolerance_seconds
        self.allow_unsigned = allow_unsigned
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> "ClerkWebhookVerifier":
        return cls(
            secret=settings.clerk_webhook_secret,
            tolerance_seconds=settings.clerk_webhook_tolerance_seconds,
            allow_unsigned=settings.allow_unsigned_webhooks and not settings.is_production,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def verify(
        self,
        payload: bytes,
        svix_id: Optional[str],
        svix_timestamp: Optional[str],
        svix_signature: Optional[str],
    ) -> List[Dict[str, Any]]:
        """
        Verify a delivery and return its events.

        Raises:
            SignatureInvalid: Missing headers/secret or signature mismatch
            SignatureExpired: Timestamp outside the tolerance window
            PayloadMalformed: Body is not a JSON event or event array
        """
        if not self._secret:
            raise SignatureInvalid("Webhook secret is not configured")
        if not (svix_id and svix_timestamp and svix_signature):
            raise SignatureInvalid("Missing svix-id, svix-timestamp or svix-signature header")

        try:
            timestamp = int(svix_timestamp)
        except ValueError:
            raise SignatureInvalid("Invalid svix-timestamp header")

        if abs(self._clock() - timestamp) > self.tolerance_seconds:
            raise SignatureExpired("Webhook timestamp outside tolerance window")

        try:
            text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        except UnicodeDecodeError as e:
            raise PayloadMalformed(f"Payload is not UTF-8: {e}")

        # Signature first, so a tampered body is reported as SignatureInvalid.
        # svix 2.x returns None from verify; the body is decoded here.
        try:
            Webhook(self._secret).verify(
                text,
                {
                    "svix-id": svix_id,
                    "svix-timestamp": svix_timestamp,
                    "svix-signature": svix_signature,
                },
            )
        except WebhookVerificationError as e:
            if "timestamp" in str(e).lower():
                raise SignatureExpired(str(e))
            raise SignatureInvalid(str(e))
        except json.JSONDecodeError as e:
            # svix 1.x parses the body after a matching signature
            raise PayloadMalformed(f"Invalid JSON payload: {e}")
        except ValueError as e:
            # Malformed signature list or secret encoding
            raise SignatureInvalid(f"Malformed signature: {e}")

        return parse_events(_decode_json(text))

    def parse_unsigned(self, payload: bytes) -> List[Dict[str, Any]]:
        """
        Parse a delivery without signature verification (development only).

        Raises:
            SignatureInvalid: If the bypass is not enabled
            PayloadMalformed: Body is not a JSON event or event array
        """
        if not self.allow_unsigned:
            raise SignatureInvalid("Unsigned webhooks are not accepted")

        logger.warning("Processing Clerk webhook WITHOUT signature verification")
        return parse_events(_decode_json(payload))
