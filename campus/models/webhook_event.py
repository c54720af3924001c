"""
Webhook event audit trail - every accepted webhook is recorded before processing.
Enables debugging, manual replay, and auditing.

processed_at is set at most once, on successful handler completion.
error may be set without processed_at (permanent or transient failure).
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from campus.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    received_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    source = Column(String(20), nullable=False, index=True)  # payments, subscription, crm, messaging
    event_type = Column(String(50), nullable=False)
    payload = Column(JSONB, nullable=False)
    payload_hash = Column(String(64), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)
