"""
User directory - lookup of webhook subjects and CRM profile sync.

CRM-created users have no password; they sign in through the identity provider.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from campus.database import insert_for
from campus.models.user import User, Tenant, TenantMembership

logger = logging.getLogger(__name__)


def _parse_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(
        select(User)
        .where(func.lower(User.email) == normalize_email(email))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_user(
    db: AsyncSession,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[User]:
    """Resolve a webhook subject: by id first, then by email."""
    uid = _parse_uuid(user_id)
    if uid:
        user = await db.get(User, uid)
        if user:
            return user
    if email:
        return await get_user_by_email(db, email)
    return None


async def upsert_contact(
    db: AsyncSession,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    tenant_id: Optional[str] = None,
) -> User:
    """
    Create or update a user from a CRM contact. Only fields present in the
    event are written; a missing field never clears a stored one.
    """
    email = normalize_email(email)
    values = {"email": email, "password_hash": None}
    updates = {}

    if first_name is not None:
        values["first_name"] = updates["first_name"] = first_name
    if last_name is not None:
        values["last_name"] = updates["last_name"] = last_name

    tenant_uuid = _parse_uuid(tenant_id)
    if tenant_uuid:
        if await db.get(Tenant, tenant_uuid):
            values["tenant_id"] = updates["tenant_id"] = tenant_uuid
        else:
            logger.warning("CRM contact references unknown tenant %s", str(tenant_uuid)[:8])

    stmt = insert_for(db, User).values(**values)
    if updates:
        updates["updated_at"] = datetime.now(timezone.utc)
        stmt = stmt.on_conflict_do_update(index_elements=["email"], set_=updates)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=["email"])
    await db.execute(stmt)

    user = await get_user_by_email(db, email)
    logger.info("CRM contact synced: user %s", str(user.id)[:8], extra={"user_id": str(user.id)})
    return user


async def get_or_create_tenant(db: AsyncSession, slug: str) -> Tenant:
    stmt = insert_for(db, Tenant).values(
        name=slug,
        slug=slug,
    ).on_conflict_do_nothing(index_elements=["slug"])
    await db.execute(stmt)

    result = await db.execute(select(Tenant).where(Tenant.slug == slug))
    return result.scalar_one()


async def set_membership(
    db: AsyncSession,
    user: User,
    tenant: Tenant,
    role: Optional[str] = None,
) -> TenantMembership:
    """Upsert the membership role. The first tenant also becomes the user's primary tenant."""
    role = role or "member"
    stmt = insert_for(db, TenantMembership).values(
        user_id=user.id,
        tenant_id=tenant.id,
        role=role,
    ).on_conflict_do_update(
        index_elements=["user_id", "tenant_id"],
        set_={"role": role},
    )
    await db.execute(stmt)

    if user.tenant_id is None:
        user.tenant_id = tenant.id
        await db.flush()

    result = await db.execute(
        select(TenantMembership)
        .where(
            TenantMembership.user_id == user.id,
            TenantMembership.tenant_id == tenant.id,
        )
        .execution_options(populate_existing=True)
    )
    membership = result.scalar_one()
    logger.info(
        "Membership %s in tenant %s set to %s",
        str(user.id)[:8], tenant.slug, membership.role,
        extra={"user_id": str(user.id)},
    )
    return membership


async def resolve_tenant(
    db: AsyncSession,
    tenant_id: Optional[str] = None,
    tenant_slug: Optional[str] = None,
) -> Optional[Tenant]:
    """Existing tenant by id, else tenant by slug (created if absent)."""
    tenant_uuid = _parse_uuid(tenant_id)
    if tenant_uuid:
        tenant = await db.get(Tenant, tenant_uuid)
        if tenant:
            return tenant
    if tenant_slug:
        return await get_or_create_tenant(db, tenant_slug)
    return None
