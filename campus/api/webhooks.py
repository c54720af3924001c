"""
Webhook endpoints - payments, subscription, CRM and messaging events.

Security layers (in order):
1. Rate limiting (per client IP)
2. Signature validation (x-webhook-signature over the raw body)
3. Audit trail (webhook_events table)
4. Envelope dispatch

Callers get 200 {success, eventId}; 4xx is permanent, 5xx should be retried.
"""
import logging

from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from campus.database import get_db
from campus.schemas.api_responses import WebhookAck
from campus.services.webhook_gateway import process_webhook
from campus.utils.errors import AppError, HandlerFailure, InvalidSignatureError
from campus.utils.rate_limiter import check_webhook_rate_limits
from campus.utils.webhook_signatures import verify_webhook_request

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _enforce_rate_limit(request: Request) -> None:
    """Check rate limits and raise 429 if exceeded."""
    allowed, retry_after = await check_webhook_rate_limits(_client_ip(request))
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after or 60)},
        )


def _validate_signature(source: str, request: Request, body: bytes) -> None:
    """Validate webhook signature and raise 401 if invalid."""
    if not verify_webhook_request(request.headers, body):
        logger.warning(
            "Invalid webhook signature: source=%s ip=%s",
            source, _client_ip(request),
            extra={"source": source},
        )
        raise InvalidSignatureError()


async def _handle(source: str, request: Request, db: AsyncSession) -> WebhookAck:
    await _enforce_rate_limit(request)
    body = await request.body()
    _validate_signature(source, request, body)

    try:
        event_id = await process_webhook(db, source, body)
    except AppError:
        raise
    except Exception as e:
        raise HandlerFailure() from e

    return WebhookAck(success=True, eventId=str(event_id))


@router.post("/payments", response_model=WebhookAck)
async def payments_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """payment.completed / payment.refunded / subscription.cancelled"""
    return await _handle("payments", request, db)


@router.post("/subscription", response_model=WebhookAck)
async def subscription_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Subscription lifecycle and trial events - drive the journey state."""
    return await _handle("subscription", request, db)


@router.post("/crm", response_model=WebhookAck)
async def crm_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """contact.created / contact.updated / membership.changed"""
    return await _handle("crm", request, db)


@router.post("/messaging", response_model=WebhookAck)
async def messaging_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """message.new / message.reply / contact.request - become notifications."""
    return await _handle("messaging", request, db)
