from __future__ import annotations

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import Category, Document


async def get_category(session: AsyncSession, category_id: int) -> Category | None:
    result = await session.execute(select(Category).where(Category.id == category_id))
    return result.scalar_one_or_none()


async def list_for_owner(session: AsyncSession, owner_id: str | None) -> list[Category]:
    # System defaults first, then owner-specific rows, each ordered by name.
    predicate = Category.owner_id.is_(None)
    if owner_id is not None:
        predicate = or_(predicate, Category.owner_id == owner_id)
    result = await session.execute(
        select(Category)
        .where(predicate)
        .order_by(Category.owner_id.is_not(None), Category.name, Category.id)
    )
    return list(result.scalars().all())


async def find_by_name(
    session: AsyncSession, name: str, *, owner_id: str | None
) -> Category | None:
    stmt = select(Category).where(Category.name == name)
    if owner_id is None:
        stmt = stmt.where(Category.owner_id.is_(None))
    else:
        stmt = stmt.where(Category.owner_id == owner_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def detach_documents(session: AsyncSession, category_id: int) -> int:
    result = await session.execute(
        update(Document).where(Document.category_id == category_id).values(category_id=None)
    )
    return int(result.rowcount or 0)
