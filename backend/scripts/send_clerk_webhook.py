#!/usr/bin/env python3
"""
Script to send signed Clerk webhooks to a local server.

Usage:
    # Start your server first
    uvicorn main:app --reload

    # Then run this script
    python scripts/send_clerk_webhook.py --event user_created
    python scripts/send_clerk_webhook.py --event user_deleted --clerk-user-id user_123
    python scripts/send_clerk_webhook.py --event invalid_signature
"""

import argparse
import base64
import hashlib
import hmac
import json
import os
import time
import uuid

import httpx

DEFAULT_SECRET = os.getenv(
    "CLERK_WEBHOOK_SECRET",
    "whsec_" + base64.b64encode(b"local_test_secret").decode(),
)
DEFAULT_BASE_URL = os.getenv("TEST_BASE_URL", "http://localhost:8000")
WEBHOOK_PATH = "/api/auth/webhook"


def sign(payload: bytes, svix_id: str, svix_timestamp: str, secret: str) -> str:
    """Compute the Svix v1 signature header value."""
    key = base64.b64decode(secret[len("whsec_"):]) if secret.startswith("whsec_") else secret.encode()
    signed_content = f"{svix_id}.{svix_timestamp}.".encode() + payload
    digest = hmac.new(key, signed_content, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def send_webhook(base_url: str, secret: str, event: dict, tamper: bool = False):
    """Send one signed event to the server."""
    url = f"{base_url}{WEBHOOK_PATH}"
    payload = json.dumps(event).encode("utf-8")
    svix_id = f"msg_{uuid.uuid4().hex}"
    svix_timestamp = str(int(time.time()))
    signature = sign(payload, svix_id, svix_timestamp, secret)
    if tamper:
        payload = payload.replace(b"@", b"+tampered@", 1)

    headers = {
        "Content-Type": "application/json",
        "svix-id": svix_id,
        "svix-timestamp": svix_timestamp,
        "svix-signature": signature,
    }

    print(f"\n{'='*60}")
    print(f"Sending webhook: {event.get('type')}{' (tampered)' if tamper else ''}")
    print(f"URL: {url}")
    print(f"Payload: {json.dumps(event, indent=2)}")
    print(f"{'='*60}\n")

    try:
        response = httpx.post(url, content=payload, headers=headers)
        print(f"Response Status: {response.status_code}")
        print(f"Response Body: {response.text}")
        return response
    except httpx.HTTPError as e:
        print(f"Error: {e}")
        return None


def user_event(event_type: str, clerk_user_id: str, email: str) -> dict:
    return {
        "type": event_type,
        "object": "event",
        "data": {
            "id": clerk_user_id,
            "primary_email_address_id": "idn_primary",
            "email_addresses": [{"id": "idn_primary", "email_address": email}],
            "first_name": "Test",
            "last_name": "User",
        },
    }


def main():
    parser = argparse.ArgumentParser(description="Send signed Clerk webhooks to a local server")
    parser.add_argument(
        "--event",
        choices=["user_created", "user_updated", "user_deleted", "invalid_signature"],
        default="user_created",
    )
    parser.add_argument("--clerk-user-id", default=f"user_{uuid.uuid4().hex[:12]}")
    parser.add_argument("--email", default="test.user@example.com")
    parser.add_argument(
        "--secret",
        default=DEFAULT_SECRET,
        help="Webhook secret (default: CLERK_WEBHOOK_SECRET env var)",
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="Base URL of your server (default: http://localhost:8000)",
    )
    args = parser.parse_args()

    if args.event == "user_deleted":
        event = {"type": "user.deleted", "object": "event", "data": {"id": args.clerk_user_id, "deleted": True}}
    elif args.event == "user_updated":
        event = user_event("user.updated", args.clerk_user_id, args.email)
    else:
        event = user_event("user.created", args.clerk_user_id, args.email)

    response = send_webhook(
        args.base_url, args.secret, event, tamper=args.event == "invalid_signature"
    )
    if args.event == "invalid_signature" and response is not None:
        if response.status_code == 400:
            print("\nCorrectly rejected invalid signature")
        else:
            print("\nWARNING: Invalid signature was NOT rejected!")


if __name__ == "__main__":
    main()
