"""
Webhook envelope schemas - {event, data} bodies for each source.

Each source is a closed union discriminated on `event`; the gateway parses
the raw body against the union for its source and dispatches on the
concrete envelope class. A new event type is only accepted once it is
added here AND given a handler (see campus.services.webhook_handlers).
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, model_validator

SUBSCRIPTION_TIERS = ("lebensenergie", "resilienz")


class SubjectRef(BaseModel):
    """Identifies the affected user: by id, falling back to email."""
    userId: Optional[str] = None
    email: Optional[str] = None


# --- Payments ---

class PaymentData(SubjectRef):
    courseId: str
    paymentId: Optional[str] = None
    validUntil: Optional[datetime] = None


class PaymentCompletedEnvelope(BaseModel):
    event: Literal["payment.completed"]
    data: PaymentData


class PaymentRevokedEnvelope(BaseModel):
    event: Literal["payment.refunded", "subscription.cancelled"]
    data: PaymentData


PaymentsEnvelope = Annotated[
    Union[PaymentCompletedEnvelope, PaymentRevokedEnvelope],
    Field(discriminator="event"),
]


# --- Subscription ---

class SubscriptionActivationData(SubjectRef):
    tier: Literal["lebensenergie", "resilienz"]
    startsAt: Optional[datetime] = None
    endsAt: Optional[datetime] = None


class SubscriptionWindowData(SubjectRef):
    startsAt: Optional[datetime] = None
    endsAt: Optional[datetime] = None


class SubscriptionActivatedEnvelope(BaseModel):
    """subscription.created / subscription.renewed"""
    event: Literal["subscription.created", "subscription.renewed"]
    data: SubscriptionActivationData


class SubscriptionUpgradedEnvelope(BaseModel):
    event: Literal["subscription.upgraded"]
    data: SubscriptionWindowData


class SubscriptionDowngradedEnvelope(BaseModel):
    event: Literal["subscription.downgraded"]
    data: SubscriptionWindowData


class SubscriptionEndedEnvelope(BaseModel):
    """subscription.cancelled / subscription.expired - grace period, state unchanged."""
    event: Literal["subscription.cancelled", "subscription.expired"]
    data: SubscriptionWindowData


class TrialStartedEnvelope(BaseModel):
    event: Literal["trial.started"]
    data: SubscriptionWindowData


class TrialEndedEnvelope(BaseModel):
    event: Literal["trial.ended"]
    data: SubjectRef


SubscriptionEnvelope = Annotated[
    Union[
        SubscriptionActivatedEnvelope,
        SubscriptionUpgradedEnvelope,
        SubscriptionDowngradedEnvelope,
        SubscriptionEndedEnvelope,
        TrialStartedEnvelope,
        TrialEndedEnvelope,
    ],
    Field(discriminator="event"),
]


# --- CRM ---

class ContactData(BaseModel):
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    tenantId: Optional[str] = None


class MembershipData(BaseModel):
    email: str
    tenantId: Optional[str] = None
    tenantSlug: Optional[str] = None
    role: Optional[str] = None

    @model_validator(mode="after")
    def _requires_tenant(self):
        if not self.tenantId and not self.tenantSlug:
            raise ValueError("tenantId or tenantSlug is required")
        return self


class ContactEnvelope(BaseModel):
    event: Literal["contact.created", "contact.updated"]
    data: ContactData


class MembershipChangedEnvelope(BaseModel):
    event: Literal["membership.changed"]
    data: MembershipData


CrmEnvelope = Annotated[
    Union[ContactEnvelope, MembershipChangedEnvelope],
    Field(discriminator="event"),
]


# --- Messaging ---

class NewMessageData(SubjectRef):
    conversationId: str
    senderName: str
    messagePreview: str
    conversationType: Literal["DIRECT", "GROUP", "SUPPORT"] = "DIRECT"


class MessageReplyData(SubjectRef):
    conversationId: str
    senderName: str
    messagePreview: str
    conversationName: Optional[str] = None


class ContactRequestData(SubjectRef):
    requesterName: str
    message: Optional[str] = None


class NewMessageEnvelope(BaseModel):
    event: Literal["message.new"]
    data: NewMessageData


class MessageReplyEnvelope(BaseModel):
    event: Literal["message.reply"]
    data: MessageReplyData


class ContactRequestEnvelope(BaseModel):
    event: Literal["contact.request"]
    data: ContactRequestData


MessagingEnvelope = Annotated[
    Union[NewMessageEnvelope, MessageReplyEnvelope, ContactRequestEnvelope],
    Field(discriminator="event"),
]


ENVELOPE_ADAPTERS: dict[str, TypeAdapter] = {
    "payments": TypeAdapter(PaymentsEnvelope),
    "subscription": TypeAdapter(SubscriptionEnvelope),
    "crm": TypeAdapter(CrmEnvelope),
    "messaging": TypeAdapter(MessagingEnvelope),
}

WEBHOOK_SOURCES = tuple(ENVELOPE_ADAPTERS)
