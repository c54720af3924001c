"""
Database models - import all models here so Alembic can discover them.
"""
from campus.models.user import User, Tenant, TenantMembership
from campus.models.entitlement import Entitlement
from campus.models.webhook_event import WebhookEvent
from campus.models.user_journey import UserJourney
from campus.models.check_in import CheckIn
from campus.models.user_badge import UserBadge
from campus.models.notification import Notification

__all__ = [
    "User",
    "Tenant",
    "TenantMembership",
    "Entitlement",
    "WebhookEvent",
    "UserJourney",
    "CheckIn",
    "UserBadge",
    "Notification",
]
