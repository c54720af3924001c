"""
Re-run the handler for a stored webhook event (manual replay after a fix).

Usage:
    python scripts/replay_webhook_event.py <event-id>
    python scripts/replay_webhook_event.py --failed --source subscription
"""
import argparse
import asyncio
import logging
import uuid

from sqlalchemy import select

from campus.database import async_session_factory
from campus.models.webhook_event import WebhookEvent
from campus.services.webhook_gateway import replay_webhook_event

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def _failed_event_ids(source: str | None, limit: int) -> list[uuid.UUID]:
    async with async_session_factory() as db:
        query = (
            select(WebhookEvent.id)
            .where(WebhookEvent.processed_at.is_(None), WebhookEvent.error.is_not(None))
            .order_by(WebhookEvent.received_at)
            .limit(limit)
        )
        if source:
            query = query.where(WebhookEvent.source == source)
        result = await db.execute(query)
        return list(result.scalars().all())


async def replay(event_id: uuid.UUID) -> bool:
    async with async_session_factory() as db:
        try:
            await replay_webhook_event(db, event_id)
        except Exception as e:
            logger.error("Replay of %s failed: %s", event_id, str(e))
            return False
    logger.info("Replayed %s", event_id)
    return True


async def main():
    parser = argparse.ArgumentParser(description="Replay stored webhook events")
    parser.add_argument("event_id", nargs="?")
    parser.add_argument("--failed", action="store_true", help="Replay unprocessed events with an error")
    parser.add_argument("--source", choices=["payments", "subscription", "crm", "messaging"])
    parser.add_argument("--limit", type=int, default=50)
    args = parser.parse_args()

    if args.event_id:
        event_ids = [uuid.UUID(args.event_id)]
    elif args.failed:
        event_ids = await _failed_event_ids(args.source, args.limit)
    else:
        parser.error("Pass an event id or --failed")

    ok = 0
    for event_id in event_ids:
        if await replay(event_id):
            ok += 1
    logger.info("Replay complete: %d/%d succeeded", ok, len(event_ids))


if __name__ == "__main__":
    asyncio.run(main())
