from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import get_settings
from docgate.domain.models import Document, Owner
from docgate.persistence.repos import documents as documents_repo
from docgate.persistence.repos import owners as owners_repo


def effective_chunk_limit(document: Document, owner: Owner | None) -> int:
    # Document override wins, then the owner default, then the configured default.
    if document.chunk_limit_override is not None:
        return document.chunk_limit_override
    if owner is not None and owner.default_chunk_limit is not None:
        return owner.default_chunk_limit
    return get_settings().default_chunk_limit


async def document_chunk_limit(session: AsyncSession, slug: str) -> int:
    rows = await documents_repo.get_documents_with_owner(session, [slug])
    for document, owner in rows:
        if document.active:
            return effective_chunk_limit(document, owner)
    return get_settings().default_chunk_limit


async def multi_document_chunk_limit(session: AsyncSession, slugs: list[str]) -> int:
    # A shared limit applies only when every active document resolves to the same value.
    rows = await documents_repo.get_documents_with_owner(session, list(dict.fromkeys(slugs)))
    limits = {effective_chunk_limit(document, owner) for document, owner in rows if document.active}
    if len(limits) == 1:
        return limits.pop()
    return get_settings().default_chunk_limit


def resolve_forced_model(document: Document, owner: Owner | None) -> str | None:
    if document.forced_model:
        return document.forced_model
    if owner is not None and owner.forced_model:
        return owner.forced_model
    return None


async def effective_forced_model(session: AsyncSession, document: Document) -> str | None:
    owner = None
    if document.owner_id is not None and not document.forced_model:
        owner = await owners_repo.get_owner(session, document.owner_id)
    return resolve_forced_model(document, owner)
