from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.services import chunk_limits
from docgate.tests.utils.factories import add_document, add_owner


@pytest.mark.asyncio
async def test_document_override_beats_owner_default(session: AsyncSession) -> None:
    owner = await add_owner(session, default_chunk_limit=30)
    await add_document(session, owner_id=owner.id, slug="plain")
    await add_document(session, owner_id=owner.id, slug="tuned", chunk_limit_override=8)

    assert await chunk_limits.document_chunk_limit(session, "plain") == 30
    assert await chunk_limits.document_chunk_limit(session, "tuned") == 8


@pytest.mark.asyncio
async def test_missing_or_inactive_document_uses_default(session: AsyncSession) -> None:
    owner = await add_owner(session, default_chunk_limit=30)
    await add_document(session, owner_id=owner.id, slug="retired", active=False)

    assert await chunk_limits.document_chunk_limit(session, "retired") == 50
    assert await chunk_limits.document_chunk_limit(session, "nowhere") == 50


@pytest.mark.asyncio
async def test_private_upload_uses_override_or_default(session: AsyncSession) -> None:
    await add_document(session, owner_id=None, slug="mine", access_level="owner_restricted", chunk_limit_override=3)
    await add_document(session, owner_id=None, slug="also-mine", access_level="owner_restricted")

    assert await chunk_limits.document_chunk_limit(session, "mine") == 3
    assert await chunk_limits.document_chunk_limit(session, "also-mine") == 50


@pytest.mark.asyncio
async def test_multi_document_limit_requires_agreement(session: AsyncSession) -> None:
    owner = await add_owner(session, default_chunk_limit=20)
    await add_document(session, owner_id=owner.id, slug="a")
    await add_document(session, owner_id=owner.id, slug="b")
    await add_document(session, owner_id=owner.id, slug="c", chunk_limit_override=20)
    await add_document(session, owner_id=owner.id, slug="d", chunk_limit_override=5)
    await add_document(session, owner_id=owner.id, slug="off", active=False, chunk_limit_override=99)

    assert await chunk_limits.multi_document_chunk_limit(session, ["a", "b", "c"]) == 20
    assert await chunk_limits.multi_document_chunk_limit(session, ["a", "b", "a", "off"]) == 20
    assert await chunk_limits.multi_document_chunk_limit(session, ["a", "d"]) == 50
    assert await chunk_limits.multi_document_chunk_limit(session, []) == 50


@pytest.mark.asyncio
async def test_default_chunk_limit_is_configurable(
    session: AsyncSession, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DEFAULT_CHUNK_LIMIT", "12")
    chunk_limits.get_settings.cache_clear()
    assert await chunk_limits.document_chunk_limit(session, "nowhere") == 12


@pytest.mark.asyncio
async def test_forced_model_resolution(session: AsyncSession) -> None:
    owner = await add_owner(session, forced_model="grok")
    inherits = await add_document(session, owner_id=owner.id)
    overrides = await add_document(session, owner_id=owner.id, forced_model="grok-reasoning")
    private = await add_document(session, owner_id=None, access_level="owner_restricted")

    assert await chunk_limits.effective_forced_model(session, inherits) == "grok"
    assert await chunk_limits.effective_forced_model(session, overrides) == "grok-reasoning"
    assert await chunk_limits.effective_forced_model(session, private) is None
