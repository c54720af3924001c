"""
Notification side-effects - turn messaging events and earned badges into
stored in-app notifications.

Formatting is pure (format_* functions); create_notification persists one row.
Message bodies are capped at MAX_MESSAGE_LENGTH characters plus "...".
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campus.models.notification import Notification

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 100
ELLIPSIS = "..."

MESSAGE_NEW = "message_new"
MESSAGE_REPLY = "message_reply"
CONTACT_REQUEST = "contact_request"
BADGE_EARNED = "badge_earned"

DEFAULT_CONTACT_REQUEST_MESSAGE = "Would like to connect with you."


def truncate_message(text: Optional[str], limit: int = MAX_MESSAGE_LENGTH) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def format_new_message(
    sender_name: str,
    message_preview: str,
    conversation_id: str,
    conversation_type: str = "DIRECT",
) -> dict:
    if conversation_type == "GROUP":
        title = f"New message in {sender_name}"
    elif conversation_type == "SUPPORT":
        title = "New support message"
    else:
        title = f"New message from {sender_name}"
    return {
        "type": MESSAGE_NEW,
        "title": title,
        "message": truncate_message(message_preview),
        "action_url": f"/chat/{conversation_id}",
    }


def format_message_reply(
    sender_name: str,
    message_preview: str,
    conversation_id: str,
    conversation_name: Optional[str] = None,
) -> dict:
    title = f"Reply in {conversation_name}" if conversation_name else f"Reply from {sender_name}"
    return {
        "type": MESSAGE_REPLY,
        "title": title,
        "message": truncate_message(message_preview),
        "action_url": f"/chat/{conversation_id}",
    }


def format_contact_request(requester_name: str, message: Optional[str] = None) -> dict:
    return {
        "type": CONTACT_REQUEST,
        "title": f"Contact request from {requester_name}",
        "message": truncate_message(message or DEFAULT_CONTACT_REQUEST_MESSAGE),
        "action_url": "/notifications?type=contact_requests",
    }


def format_badge_earned(badge_name: str) -> dict:
    return {
        "type": BADGE_EARNED,
        "title": "New badge earned!",
        "message": truncate_message(f'You earned the "{badge_name}" badge!'),
        "action_url": "/progress#badges",
    }


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    content: dict,
) -> Notification:
    """Persist a formatted notification. Caller owns the transaction."""
    notification = Notification(
        user_id=user_id,
        type=content["type"],
        title=content["title"],
        message=truncate_message(content["message"]),
        action_url=content.get("action_url"),
    )
    db.add(notification)
    await db.flush()

    logger.info(
        "Notification %s created for user %s",
        content["type"], str(user_id)[:8],
        extra={"user_id": str(user_id)},
    )
    return notification
