"""
Webhook event log - audit trail for every accepted webhook.

Rows are inserted before the handler runs and are never deleted.
Outcome updates go through UPDATE statements keyed by id so they work on a
session that was rolled back after a handler failure.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus.models.webhook_event import WebhookEvent
from campus.utils.logging import get_correlation_id

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


async def record_webhook_event(
    db: AsyncSession,
    source: str,
    event_type: str,
    payload: dict,
    payload_hash: str,
) -> WebhookEvent:
    """Record a webhook event in the audit trail before processing."""
    event = WebhookEvent(
        source=source,
        event_type=event_type,
        payload=payload,
        payload_hash=payload_hash,
        correlation_id=get_correlation_id(),
    )
    db.add(event)
    await db.flush()
    return event


async def get_webhook_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[WebhookEvent]:
    result = await db.execute(select(WebhookEvent).where(WebhookEvent.id == event_id))
    return result.scalar_one_or_none()


async def mark_event_processed(db: AsyncSession, event_id: uuid.UUID) -> None:
    """Set processed_at once. A second call leaves the first timestamp in place."""
    await db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == event_id, WebhookEvent.processed_at.is_(None))
        .values(processed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )


async def mark_event_failed(db: AsyncSession, event_id: uuid.UUID, error: str) -> None:
    """Record the failure. processed_at is left untouched."""
    await db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.id == event_id)
        .values(error=(error or "Unknown error")[:MAX_ERROR_LENGTH])
        .execution_options(synchronize_session=False)
    )
