"""
Webhook gateway - parse, record, dispatch, report.

Pipeline for one delivery (signature is checked by the endpoint before this runs):
1. Parse the body against the source's envelope union (400, nothing stored)
2. Record a WebhookEvent and commit it, so the audit row survives any
   handler failure
3. Dispatch to the handler for the envelope class
4. Mark processed_at on success; on failure roll back the handler's
   mutations, store the error on the event and re-raise

Every delivery produces its own row. There is no dedup by payload hash;
handlers are idempotent where it matters (entitlement and badge upserts).
"""
import json
import logging
import uuid

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from campus.schemas.webhook_payloads import ENVELOPE_ADAPTERS
from campus.services.event_log import (
    record_webhook_event,
    get_webhook_event,
    mark_event_processed,
    mark_event_failed,
)
from campus.services.webhook_handlers import dispatch
from campus.utils.errors import AppError, SchemaValidationError
from campus.utils.webhook_signatures import compute_payload_hash

logger = logging.getLogger(__name__)


def _format_errors(exc: ValidationError) -> list[dict]:
    return [
        {
            "path": ".".join(str(part) for part in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def parse_envelope(source: str, payload):
    """Validate a decoded body against the envelope union for its source."""
    adapter = ENVELOPE_ADAPTERS.get(source)
    if adapter is None:
        raise SchemaValidationError([{"path": "source", "message": f"Unknown webhook source: {source}"}])
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise SchemaValidationError(_format_errors(e)) from e


def decode_body(body: bytes) -> dict:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise SchemaValidationError([{"path": "", "message": "Body must be valid JSON"}]) from e
    if not isinstance(payload, dict):
        raise SchemaValidationError([{"path": "", "message": "Body must be a JSON object"}])
    return payload


async def _run_handler(db: AsyncSession, event_id: uuid.UUID, envelope, source: str) -> None:
    """Dispatch and record the outcome on the event row. Failures are re-raised."""
    log_extra = {"event_id": str(event_id), "source": source, "event_type": envelope.event}
    try:
        await dispatch(db, envelope)
    except AppError as e:
        await db.rollback()
        await mark_event_failed(db, event_id, e.message)
        await db.commit()
        logger.warning(
            "Webhook %s/%s rejected: %s",
            source, envelope.event, e.message,
            extra=log_extra,
        )
        raise
    except Exception as e:
        await db.rollback()
        await mark_event_failed(db, event_id, str(e) or type(e).__name__)
        await db.commit()
        logger.error(
            "Webhook %s/%s handler failed: %s",
            source, envelope.event, str(e),
            exc_info=True,
            extra=log_extra,
        )
        raise

    await mark_event_processed(db, event_id)
    await db.commit()
    logger.info("Webhook %s/%s processed", source, envelope.event, extra=log_extra)


async def process_webhook(db: AsyncSession, source: str, body: bytes) -> uuid.UUID:
    """Ingest and dispatch one verified delivery. Returns the event id."""
    payload = decode_body(body)
    envelope = parse_envelope(source, payload)

    event = await record_webhook_event(
        db,
        source=source,
        event_type=envelope.event,
        payload=payload,
        payload_hash=compute_payload_hash(body),
    )
    event_id = event.id
    await db.commit()

    await _run_handler(db, event_id, envelope, source)
    return event_id


async def replay_webhook_event(db: AsyncSession, event_id: uuid.UUID) -> uuid.UUID:
    """
    Re-run the handler for a stored event. processed_at is set on success
    (only if still unset); a previously recorded error is kept for audit.
    """
    event = await get_webhook_event(db, event_id)
    if not event:
        raise LookupError(f"Webhook event {event_id} not found")

    source = event.source
    envelope = parse_envelope(source, event.payload)
    logger.info(
        "Replaying webhook %s/%s",
        source, envelope.event,
        extra={"event_id": str(event_id), "source": source},
    )
    await _run_handler(db, event_id, envelope, source)
    return event_id
