from __future__ import annotations

import math
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import EMBED_DIM
from docgate.domain.models import (
    ACCESS_PUBLIC,
    PLAN_PRO,
    Document,
    DocumentChunk,
    Owner,
    RoleAssignment,
    TenantAccessGrant,
    User,
)


async def add_user(session: AsyncSession, principal_id: str | None = None) -> str:
    # Provision a bare principal; permissions come only from role rows.
    principal_id = principal_id or f"user-{uuid4().hex[:12]}"
    session.add(User(id=principal_id, email=f"{principal_id}@example.com"))
    await session.commit()
    return principal_id


async def add_owner(
    session: AsyncSession,
    *,
    slug: str | None = None,
    plan_tier: str | None = PLAN_PRO,
    default_chunk_limit: int = 50,
    forced_model: str | None = None,
) -> Owner:
    owner = Owner(
        id=uuid4().hex,
        slug=slug or f"owner-{uuid4().hex[:8]}",
        name="Test Owner",
        plan_tier=plan_tier,
        default_chunk_limit=default_chunk_limit,
        forced_model=forced_model,
        metadata_json={},
    )
    session.add(owner)
    await session.commit()
    return owner


async def add_document(
    session: AsyncSession,
    *,
    owner_id: str | None,
    access_level: str = ACCESS_PUBLIC,
    passcode: str | None = None,
    active: bool = True,
    metadata: dict[str, Any] | None = None,
    slug: str | None = None,
    chunk_limit_override: int | None = None,
    forced_model: str | None = None,
) -> Document:
    # Bypasses the quota so tests can build arbitrary starting states.
    document = Document(
        id=uuid4().hex,
        slug=slug or f"doc-{uuid4().hex[:10]}",
        title="Test Document",
        owner_id=owner_id,
        access_level=access_level,
        passcode=passcode,
        active=active,
        chunk_limit_override=chunk_limit_override,
        forced_model=forced_model,
        metadata_json=metadata or {},
    )
    session.add(document)
    await session.commit()
    return document


async def add_role(
    session: AsyncSession, principal_id: str, role: str, owner_id: str | None = None
) -> None:
    session.add(
        RoleAssignment(id=uuid4().hex, principal_id=principal_id, owner_id=owner_id, role=role)
    )
    await session.commit()


async def add_grant(session: AsyncSession, principal_id: str, owner_id: str) -> None:
    session.add(TenantAccessGrant(id=uuid4().hex, principal_id=principal_id, owner_id=owner_id))
    await session.commit()


def query_vector() -> list[float]:
    # Unit vector on the first axis; pairs with vector_with_similarity below.
    vector = [0.0] * EMBED_DIM
    vector[0] = 1.0
    return vector


def vector_with_similarity(similarity: float) -> list[float]:
    # Unit vector whose cosine similarity to query_vector() is exactly ``similarity``.
    vector = [0.0] * EMBED_DIM
    vector[0] = similarity
    vector[1] = math.sqrt(max(0.0, 1.0 - similarity * similarity))
    return vector


async def add_chunk(
    session: AsyncSession,
    *,
    document_id: str,
    chunk_index: int,
    content: str,
    similarity: float,
) -> DocumentChunk:
    chunk = DocumentChunk(
        id=uuid4().hex,
        document_id=document_id,
        chunk_index=chunk_index,
        content=content,
        embedding=vector_with_similarity(similarity),
        metadata_json={"chunk_index": chunk_index},
    )
    session.add(chunk)
    await session.commit()
    return chunk
