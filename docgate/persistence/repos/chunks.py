from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import DocumentChunk


async def list_chunks(session: AsyncSession, document_ids: list[str]) -> list[DocumentChunk]:
    if not document_ids:
        return []
    result = await session.execute(
        select(DocumentChunk)
        .where(DocumentChunk.document_id.in_(document_ids))
        .order_by(DocumentChunk.document_id, DocumentChunk.chunk_index)
    )
    return list(result.scalars().all())
