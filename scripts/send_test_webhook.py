"""
Sign and send a sample webhook to a running instance.

Usage:
    python scripts/send_test_webhook.py --user-id <uuid>
    python scripts/send_test_webhook.py --source subscription --event subscription.created --tier resilienz --user-id <uuid>
    python scripts/send_test_webhook.py --source messaging --event message.new --email anna@example.com
"""
import argparse
import asyncio
import json
import logging
import os

import httpx

from campus.utils.webhook_signatures import SIGNATURE_HEADER, sign_payload

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"

SAMPLE_DATA = {
    "payment.completed": {"courseId": "lebensenergie-basis", "paymentId": "pay_test_0001"},
    "payment.refunded": {"courseId": "lebensenergie-basis", "paymentId": "pay_test_0001"},
    "subscription.created": {},
    "subscription.renewed": {},
    "subscription.upgraded": {},
    "subscription.downgraded": {},
    "subscription.cancelled": {},
    "trial.started": {},
    "trial.ended": {},
    "contact.created": {"firstName": "Anna", "lastName": "Muster"},
    "membership.changed": {"tenantSlug": "demo-campus", "role": "member"},
    "message.new": {
        "conversationId": "conv_test_0001",
        "senderName": "Lena",
        "messagePreview": "Hast du Lust, morgen gemeinsam die Atemübung zu machen?",
        "conversationType": "DIRECT",
    },
    "message.reply": {
        "conversationId": "conv_test_0001",
        "senderName": "Lena",
        "messagePreview": "Super, bis morgen!",
        "conversationName": "Morgenroutine",
    },
    "contact.request": {"requesterName": "Lena"},
}


def build_envelope(event: str, user_id: str | None, email: str | None, tier: str) -> dict:
    data = dict(SAMPLE_DATA[event])
    if user_id:
        data["userId"] = user_id
    if email:
        data["email"] = email
    if event in ("subscription.created", "subscription.renewed"):
        data["tier"] = tier
    return {"event": event, "data": data}


async def send(source: str, envelope: dict, secret: str) -> httpx.Response:
    body = json.dumps(envelope).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: sign_payload(secret, body),
    }
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(f"{BASE_URL}/webhooks/{source}", content=body, headers=headers)
        logger.info("%s %s -> %s %s", source, envelope["event"], resp.status_code, resp.text)
        return resp


async def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Send a signed test webhook")
    parser.add_argument("--source", default="payments", choices=["payments", "subscription", "crm", "messaging"])
    parser.add_argument("--event", default="payment.completed", choices=sorted(SAMPLE_DATA))
    parser.add_argument("--user-id")
    parser.add_argument("--email")
    parser.add_argument("--tier", default="lebensenergie", choices=["lebensenergie", "resilienz"])
    parser.add_argument("--secret", default=os.environ.get("WEBHOOK_SECRET", ""))
    parser.add_argument("--base-url", default=BASE_URL)
    args = parser.parse_args()

    if not args.secret:
        parser.error("WEBHOOK_SECRET is not set (pass --secret)")

    BASE_URL = args.base_url
    envelope = build_envelope(args.event, args.user_id, args.email, args.tier)
    await send(args.source, envelope, args.secret)


if __name__ == "__main__":
    asyncio.run(main())
