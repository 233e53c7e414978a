from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import Document, Owner


async def get_document(session: AsyncSession, document_id: str) -> Document | None:
    result = await session.execute(select(Document).where(Document.id == document_id))
    return result.scalar_one_or_none()


async def get_document_by_slug(session: AsyncSession, slug: str) -> Document | None:
    result = await session.execute(select(Document).where(Document.slug == slug))
    return result.scalar_one_or_none()


async def resolve_document(session: AsyncSession, identifier: str) -> Document | None:
    # Slugs win over ids; a slug may itself look like an id.
    document = await get_document_by_slug(session, identifier)
    if document is None:
        document = await get_document(session, identifier)
    return document


async def get_documents(
    session: AsyncSession,
    *,
    document_ids: list[str] | None = None,
    slugs: list[str] | None = None,
) -> list[Document]:
    # Batch-load by id and/or slug in one round trip for list filtering.
    if not document_ids and not slugs:
        return []
    stmt = select(Document)
    if document_ids and slugs:
        stmt = stmt.where(Document.id.in_(document_ids) | Document.slug.in_(slugs))
    elif document_ids:
        stmt = stmt.where(Document.id.in_(document_ids))
    else:
        stmt = stmt.where(Document.slug.in_(slugs or []))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_documents_with_owner(
    session: AsyncSession, slugs: list[str]
) -> list[tuple[Document, Owner | None]]:
    # Outer join keeps private uploads (no owner) in the result set.
    if not slugs:
        return []
    result = await session.execute(
        select(Document, Owner)
        .outerjoin(Owner, Owner.id == Document.owner_id)
        .where(Document.slug.in_(slugs))
    )
    return [(row[0], row[1]) for row in result.all()]


async def slug_taken(session: AsyncSession, slug: str, *, exclude_id: str | None = None) -> bool:
    stmt = select(Document.id).where(Document.slug == slug)
    if exclude_id:
        stmt = stmt.where(Document.id != exclude_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def list_documents(
    session: AsyncSession,
    *,
    owner_id: str | None = None,
    include_inactive: bool = False,
) -> list[Document]:
    stmt = select(Document)
    if owner_id is not None:
        stmt = stmt.where(Document.owner_id == owner_id)
    if not include_inactive:
        stmt = stmt.where(Document.active.is_(True))
    result = await session.execute(stmt.order_by(Document.created_at, Document.id))
    return list(result.scalars().all())
