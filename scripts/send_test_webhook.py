#!/usr/bin/env python3
"""
Signed Webhook Sender

Signs a sample subscription event with WEBHOOK_SECRET and POSTs it to a
running gateway, the way the payment provider would.

Usage:
    python scripts/send_test_webhook.py [event] [--url URL] [--event-id ID]

Examples:
    python scripts/send_test_webhook.py subscription.charged
    python scripts/send_test_webhook.py subscription.halted --url http://localhost:8000/webhooks/razorpay
"""

import argparse
import asyncio
import json
import os
import sys
import time
from pathlib import Path

# Add parent directory to path so we can import from billing_gateway
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
from dotenv import load_dotenv

from billing_gateway.webhooks import SignatureVerifier

# Load environment variables
load_dotenv()

DEFAULT_URL = "http://localhost:8000/webhooks/razorpay"


def sample_body(event: str) -> dict:
    now = int(time.time())
    body = {
        "event": event,
        "payload": {
            "subscription": {
                "entity": {
                    "id": "sub_test_0001",
                    "plan_id": "plan_monthly",
                    "customer_id": "cust_test_0001",
                    "status": event.rsplit(".", 1)[-1],
                    "quantity": 1,
                    "paid_count": 1,
                    "remaining_count": 11,
                    "current_start": now,
                    "current_end": now + 30 * 86400,
                    "charge_at": now + 30 * 86400,
                    "end_at": now + 365 * 86400,
                }
            }
        },
        "created_at": now,
    }
    if event == "subscription.charged":
        body["payload"]["payment"] = {
            "entity": {
                "id": "pay_test_0001",
                "amount": 4900,
                "currency": "INR",
                "method": "upi",
                "status": "captured",
                "created_at": now,
            }
        }
    return body


async def main():
    parser = argparse.ArgumentParser(description="Send a signed test webhook")
    parser.add_argument("event", nargs="?", default="subscription.charged")
    parser.add_argument("--url", default=DEFAULT_URL)
    parser.add_argument("--event-id", default=None, help="Value for the x-razorpay-event-id header")
    args = parser.parse_args()

    secret = os.getenv("WEBHOOK_SECRET", "")
    if not secret:
        print("ERROR: WEBHOOK_SECRET is not set (add it to your .env file)")
        sys.exit(1)

    raw = json.dumps(sample_body(args.event), separators=(",", ":")).encode("utf-8")
    headers = {
        "content-type": "application/json",
        "x-razorpay-signature": SignatureVerifier(secret).compute(raw),
    }
    if args.event_id:
        headers["x-razorpay-event-id"] = args.event_id

    print(f"POST {args.url} ({args.event}, {len(raw)} bytes)")

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(args.url, content=raw, headers=headers)
    except httpx.HTTPError as e:
        print("ERROR:", str(e))
        sys.exit(1)

    print(f"HTTP {response.status_code}")
    print(response.text)


if __name__ == "__main__":
    asyncio.run(main())
