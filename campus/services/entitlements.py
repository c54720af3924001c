"""
Entitlement store - course access granted by payments.
Grants are upserts (a refunded course that is bought again is un-revoked);
revocations only touch active grants, so both are safe to repeat.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campus.database import insert_for
from campus.models.entitlement import Entitlement
from campus.utils.timezone import as_utc

logger = logging.getLogger(__name__)


async def grant_entitlement(
    db: AsyncSession,
    user_id: uuid.UUID,
    course_id: str,
    source_ref: Optional[str] = None,
    valid_until: Optional[datetime] = None,
) -> Entitlement:
    stmt = insert_for(db, Entitlement).values(
        user_id=user_id,
        course_id=course_id,
        source="payment",
        source_ref=source_ref,
        valid_until=valid_until,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "course_id"],
        set_={
            "revoked_at": None,
            "source": "payment",
            "source_ref": source_ref,
            "valid_until": valid_until,
        },
    )
    await db.execute(stmt)

    result = await db.execute(
        select(Entitlement)
        .where(Entitlement.user_id == user_id, Entitlement.course_id == course_id)
        .execution_options(populate_existing=True)
    )
    entitlement = result.scalar_one()
    logger.info(
        "Entitlement granted: user %s course %s",
        str(user_id)[:8], course_id,
        extra={"user_id": str(user_id)},
    )
    return entitlement


async def revoke_entitlements(
    db: AsyncSession,
    user_id: uuid.UUID,
    course_id: str,
) -> int:
    """Revoke active grants for the course. Returns the number of rows revoked."""
    result = await db.execute(
        update(Entitlement)
        .where(
            Entitlement.user_id == user_id,
            Entitlement.course_id == course_id,
            Entitlement.revoked_at.is_(None),
        )
        .values(revoked_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    revoked = result.rowcount or 0
    logger.info(
        "Entitlements revoked: user %s course %s count=%d",
        str(user_id)[:8], course_id, revoked,
        extra={"user_id": str(user_id)},
    )
    return revoked


async def has_active_entitlement(
    db: AsyncSession,
    user_id: uuid.UUID,
    course_id: str,
    now: Optional[datetime] = None,
) -> bool:
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Entitlement).where(
            Entitlement.user_id == user_id,
            Entitlement.course_id == course_id,
            Entitlement.revoked_at.is_(None),
        )
    )
    entitlement = result.scalar_one_or_none()
    if not entitlement:
        return False
    if entitlement.valid_until is None:
        return True
    return as_utc(entitlement.valid_until) > now
