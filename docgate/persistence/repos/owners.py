from __future__ import annotations

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import Document, Owner


async def get_owner(session: AsyncSession, owner_id: str) -> Owner | None:
    result = await session.execute(select(Owner).where(Owner.id == owner_id))
    return result.scalar_one_or_none()


def lock_owner_stmt(owner_id: str) -> Select[tuple[Owner]]:
    # Row lock serializes quota-gated document creation per owner (not rendered on SQLite).
    return select(Owner).where(Owner.id == owner_id).with_for_update()


async def get_owner_for_update(session: AsyncSession, owner_id: str) -> Owner | None:
    result = await session.execute(lock_owner_stmt(owner_id))
    return result.scalar_one_or_none()


async def slug_taken(session: AsyncSession, slug: str, *, exclude_id: str | None = None) -> bool:
    stmt = select(Owner.id).where(Owner.slug == slug)
    if exclude_id:
        stmt = stmt.where(Owner.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def custom_domain_taken(
    session: AsyncSession, custom_domain: str, *, exclude_id: str | None = None
) -> bool:
    stmt = select(Owner.id).where(Owner.custom_domain == custom_domain)
    if exclude_id:
        stmt = stmt.where(Owner.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def list_owners(session: AsyncSession) -> list[Owner]:
    result = await session.execute(select(Owner).order_by(Owner.name, Owner.id))
    return list(result.scalars().all())


async def count_active_documents(session: AsyncSession, owner_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Document)
        .where(Document.owner_id == owner_id, Document.active.is_(True))
    )
    return int(result.scalar() or 0)
