"""
Webhook handlers - one coroutine per envelope class.

HANDLERS maps every envelope class of every source union to its handler.
The module refuses to import if a union member has no handler, so an event
type added to the schemas cannot be accepted until it is handled here.
"""
import logging
import typing

from sqlalchemy.ext.asyncio import AsyncSession

from campus.models.user import User
from campus.schemas import webhook_payloads as wp
from campus.services import directory, entitlements, journey as journey_service
from campus.services.badges import grant_badge
from campus.services.notifications import (
    create_notification,
    format_new_message,
    format_message_reply,
    format_contact_request,
)
from campus.utils.errors import ReferenceNotFound

logger = logging.getLogger(__name__)


async def _require_user(db: AsyncSession, subject: wp.SubjectRef) -> User:
    user = await directory.find_user(db, user_id=subject.userId, email=subject.email)
    if not user:
        logger.warning(
            "Webhook subject not found: user_id=%s email_present=%s",
            (subject.userId or "")[:8], bool(subject.email),
        )
        raise ReferenceNotFound()
    return user


# --- Payments ---

async def handle_payment_completed(db: AsyncSession, envelope: wp.PaymentCompletedEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    await entitlements.grant_entitlement(
        db, user.id, data.courseId,
        source_ref=data.paymentId,
        valid_until=data.validUntil,
    )


async def handle_payment_revoked(db: AsyncSession, envelope: wp.PaymentRevokedEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    await entitlements.revoke_entitlements(db, user.id, data.courseId)


# --- Subscription ---

async def handle_subscription_activated(
    db: AsyncSession, envelope: wp.SubscriptionActivatedEnvelope,
) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.activate_subscription(
        journey,
        data.tier,
        starts_at=data.startsAt,
        ends_at=data.endsAt,
        renewal=envelope.event == "subscription.renewed",
    )
    await db.flush()


async def handle_subscription_upgraded(
    db: AsyncSession, envelope: wp.SubscriptionUpgradedEnvelope,
) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.change_tier(journey, "resilienz", ends_at=data.endsAt)
    await db.flush()
    await grant_badge(db, user.id, "resilienz-upgrade")


async def handle_subscription_downgraded(
    db: AsyncSession, envelope: wp.SubscriptionDowngradedEnvelope,
) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.change_tier(journey, "lebensenergie", ends_at=data.endsAt)
    await db.flush()


async def handle_subscription_ended(
    db: AsyncSession, envelope: wp.SubscriptionEndedEnvelope,
) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.end_subscription(journey, ends_at=data.endsAt)
    await db.flush()
    logger.info(
        "Subscription %s for user %s, state kept at %s until reconciliation",
        envelope.event, str(user.id)[:8], journey.state,
        extra={"user_id": str(user.id)},
    )


async def handle_trial_started(db: AsyncSession, envelope: wp.TrialStartedEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.open_trial(journey, starts_at=data.startsAt, ends_at=data.endsAt)
    await db.flush()


async def handle_trial_ended(db: AsyncSession, envelope: wp.TrialEndedEnvelope) -> None:
    user = await _require_user(db, envelope.data)
    journey = await journey_service.get_or_create_journey(db, user.id)
    journey_service.close_trial(journey)
    await db.flush()


# --- CRM ---

async def handle_contact(db: AsyncSession, envelope: wp.ContactEnvelope) -> None:
    data = envelope.data
    await directory.upsert_contact(
        db,
        data.email,
        first_name=data.firstName,
        last_name=data.lastName,
        tenant_id=data.tenantId,
    )


async def handle_membership_changed(db: AsyncSession, envelope: wp.MembershipChangedEnvelope) -> None:
    data = envelope.data
    user = await directory.get_user_by_email(db, data.email)
    if not user:
        raise ReferenceNotFound()
    tenant = await directory.resolve_tenant(db, tenant_id=data.tenantId, tenant_slug=data.tenantSlug)
    if not tenant:
        raise ReferenceNotFound("Tenant not found")
    await directory.set_membership(db, user, tenant, role=data.role)


# --- Messaging ---

async def handle_new_message(db: AsyncSession, envelope: wp.NewMessageEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    await create_notification(db, user.id, format_new_message(
        data.senderName,
        data.messagePreview,
        data.conversationId,
        data.conversationType,
    ))


async def handle_message_reply(db: AsyncSession, envelope: wp.MessageReplyEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    await create_notification(db, user.id, format_message_reply(
        data.senderName,
        data.messagePreview,
        data.conversationId,
        data.conversationName,
    ))


async def handle_contact_request(db: AsyncSession, envelope: wp.ContactRequestEnvelope) -> None:
    data = envelope.data
    user = await _require_user(db, data)
    await create_notification(db, user.id, format_contact_request(data.requesterName, data.message))


HANDLERS = {
    wp.PaymentCompletedEnvelope: handle_payment_completed,
    wp.PaymentRevokedEnvelope: handle_payment_revoked,
    wp.SubscriptionActivatedEnvelope: handle_subscription_activated,
    wp.SubscriptionUpgradedEnvelope: handle_subscription_upgraded,
    wp.SubscriptionDowngradedEnvelope: handle_subscription_downgraded,
    wp.SubscriptionEndedEnvelope: handle_subscription_ended,
    wp.TrialStartedEnvelope: handle_trial_started,
    wp.TrialEndedEnvelope: handle_trial_ended,
    wp.ContactEnvelope: handle_contact,
    wp.MembershipChangedEnvelope: handle_membership_changed,
    wp.NewMessageEnvelope: handle_new_message,
    wp.MessageReplyEnvelope: handle_message_reply,
    wp.ContactRequestEnvelope: handle_contact_request,
}


def envelope_classes(union) -> tuple:
    """Member classes of an Annotated[Union[...], Field(discriminator=...)] alias."""
    return typing.get_args(typing.get_args(union)[0])


SOURCE_UNIONS = {
    "payments": wp.PaymentsEnvelope,
    "subscription": wp.SubscriptionEnvelope,
    "crm": wp.CrmEnvelope,
    "messaging": wp.MessagingEnvelope,
}

_unhandled = [
    cls.__name__
    for union in SOURCE_UNIONS.values()
    for cls in envelope_classes(union)
    if cls not in HANDLERS
]
if _unhandled:
    raise RuntimeError(f"Webhook envelopes without a handler: {', '.join(_unhandled)}")


async def dispatch(db: AsyncSession, envelope) -> None:
    handler = HANDLERS[type(envelope)]
    await handler(db, envelope)
