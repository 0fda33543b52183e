"""
Tests for Clerk webhook signature verification.

Tests cover:
- Valid signatures (single event and batches)
- Tampered payloads, wrong secrets and malformed signature headers
- Replay protection (expired and future timestamps)
- Malformed JSON and non-event payloads
- Development bypass gating
"""

import json
import time
from unittest.mock import patch

import pytest

from wealthiq.config.settings import SyncSettings
from wealthiq.services.webhook_verifier import (
    ClerkWebhookVerifier,
    PayloadMalformed,
    SignatureExpired,
    SignatureInvalid,
    parse_events,
)
from wealthiq.tests.helpers.svix_signing import compute_svix_signature


@pytest.fixture
def verifier(webhook_secret):
    return ClerkWebhookVerifier(secret=webhook_secret)


def _verify(verifier, payload: bytes, headers: dict):
    return verifier.verify(
        payload,
        headers.get("svix-id"),
        headers.get("svix-timestamp"),
        headers.get("svix-signature"),
    )


class TestValidSignatures:

    def test_single_event_becomes_one_element_list(self, verifier, sign_webhook):
        payload = json.dumps({"type": "user.created", "data": {"id": "user_1"}}).encode()

        events = _verify(verifier, payload, sign_webhook(payload))

        assert events == [{"type": "user.created", "data": {"id": "user_1"}}]

    def test_batch_is_returned_in_order(self, verifier, sign_webhook):
        batch = [
            {"type": "user.created", "data": {"id": "user_1"}},
            {"type": "user.deleted", "data": {"id": "user_1"}},
        ]
        payload = json.dumps(batch).encode()

        events = _verify(verifier, payload, sign_webhook(payload))

        assert [e["type"] for e in events] == ["user.created", "user.deleted"]

    def test_any_matching_signature_in_list_is_accepted(self, verifier, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload)
        headers["svix-signature"] = "v1,bm90LXRoZS1yaWdodC1zaWc= " + headers["svix-signature"]

        assert len(_verify(verifier, payload, headers)) == 1

    def test_events_come_from_body_when_svix_returns_nothing(self, verifier, sign_webhook):
        payload = json.dumps({"type": "user.created", "data": {"id": "idp_1"}}).encode()
        headers = sign_webhook(payload)

        with patch("wealthiq.services.webhook_verifier.Webhook.verify", return_value=None) as svix_verify:
            events = _verify(verifier, payload, headers)

        svix_verify.assert_called_once()
        assert events == [{"type": "user.created", "data": {"id": "idp_1"}}]


class TestRejectedSignatures:

    def test_tampered_payload(self, verifier, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload)

        with pytest.raises(SignatureInvalid):
            _verify(verifier, payload.replace(b"user_1", b"user_2"), headers)

    def test_wrong_secret(self, sign_webhook):
        import base64

        other = ClerkWebhookVerifier(secret="whsec_" + base64.b64encode(b"another_secret").decode())
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'

        with pytest.raises(SignatureInvalid):
            _verify(other, payload, sign_webhook(payload))

    @pytest.mark.parametrize("missing", ["svix-id", "svix-timestamp", "svix-signature"])
    def test_missing_header(self, verifier, sign_webhook, missing):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload)
        headers.pop(missing)

        with pytest.raises(SignatureInvalid):
            _verify(verifier, payload, headers)

    def test_non_numeric_timestamp(self, verifier, sign_webhook):
        payload = b'{"type": "user.created"}'
        headers = sign_webhook(payload)
        headers["svix-timestamp"] = "yesterday"

        with pytest.raises(SignatureInvalid):
            _verify(verifier, payload, headers)

    def test_unsupported_signature_version(self, verifier, sign_webhook):
        payload = b'{"type": "user.created"}'
        headers = sign_webhook(payload)
        headers["svix-signature"] = headers["svix-signature"].replace("v1,", "v2,")

        with pytest.raises(SignatureInvalid):
            _verify(verifier, payload, headers)

    def test_secret_not_configured(self, sign_webhook):
        payload = b'{"type": "user.created"}'

        with pytest.raises(SignatureInvalid):
            _verify(ClerkWebhookVerifier(secret=None), payload, sign_webhook(payload))


class TestReplayProtection:

    def test_expired_timestamp(self, verifier, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload, timestamp=int(time.time()) - 600)

        with pytest.raises(SignatureExpired):
            _verify(verifier, payload, headers)

    def test_future_timestamp(self, verifier, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload, timestamp=int(time.time()) + 600)

        with pytest.raises(SignatureExpired):
            _verify(verifier, payload, headers)

    def test_tolerance_uses_injected_clock(self, webhook_secret, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        signed_at = int(time.time())
        headers = sign_webhook(payload, timestamp=signed_at)
        verifier = ClerkWebhookVerifier(
            secret=webhook_secret,
            tolerance_seconds=60,
            clock=lambda: signed_at + 61,
        )

        with pytest.raises(SignatureExpired):
            _verify(verifier, payload, headers)

    def test_tolerance_cannot_exceed_svix_window(self, webhook_secret):
        with pytest.raises(ValueError, match="at most 300"):
            ClerkWebhookVerifier(secret=webhook_secret, tolerance_seconds=600)


class TestMalformedPayloads:

    def test_signed_body_that_is_not_json(self, verifier, sign_webhook):
        payload = b"not json at all"

        with pytest.raises(PayloadMalformed):
            _verify(verifier, payload, sign_webhook(payload))

    def test_tampered_non_json_body_is_a_signature_failure(self, verifier, sign_webhook):
        payload = b'{"type": "user.created", "data": {"id": "user_1"}}'
        headers = sign_webhook(payload)

        with pytest.raises(SignatureInvalid):
            _verify(verifier, b"not json at all", headers)

    def test_signed_scalar_json(self, verifier, sign_webhook):
        payload = b'"just a string"'

        with pytest.raises(PayloadMalformed):
            _verify(verifier, payload, sign_webhook(payload))

    def test_batch_with_non_object_item(self):
        with pytest.raises(PayloadMalformed):
            parse_events([{"type": "user.created"}, 42])


class TestUnsignedBypass:

    def test_refused_unless_enabled(self, verifier):
        with pytest.raises(SignatureInvalid):
            verifier.parse_unsigned(b'{"type": "user.created"}')

    def test_parses_when_enabled(self, caplog):
        verifier = ClerkWebhookVerifier(secret=None, allow_unsigned=True)

        events = verifier.parse_unsigned(b'{"type": "user.created", "data": {"id": "user_1"}}')

        assert events[0]["data"]["id"] == "user_1"
        assert "WITHOUT signature verification" in caplog.text

    def test_enabled_bypass_still_rejects_bad_json(self):
        verifier = ClerkWebhookVerifier(secret=None, allow_unsigned=True)

        with pytest.raises(PayloadMalformed):
            verifier.parse_unsigned(b"{broken")

    def test_from_settings_refuses_bypass_in_production(self):
        settings = SyncSettings(env="production", allow_unsigned_webhooks=True)

        assert ClerkWebhookVerifier.from_settings(settings).allow_unsigned is False

    def test_from_settings_keeps_bypass_in_development(self):
        settings = SyncSettings(env="development", allow_unsigned_webhooks=True)

        assert ClerkWebhookVerifier.from_settings(settings).allow_unsigned is True


def test_signature_helper_matches_verifier(webhook_secret):
    """Sanity check of the signing helper other test modules rely on."""
    payload = b'{"type": "user.created"}'
    ts = str(int(time.time()))
    signature = compute_svix_signature(payload, "msg_1", ts, webhook_secret)

    events = ClerkWebhookVerifier(secret=webhook_secret).verify(payload, "msg_1", ts, signature)

    assert events == [{"type": "user.created"}]
