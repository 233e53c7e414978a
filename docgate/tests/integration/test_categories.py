from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from docgate.domain.models import Document
from docgate.services import categories as categories_service
from docgate.tests.utils.factories import add_document, add_owner, add_role, add_user


@pytest.mark.asyncio
async def test_seed_default_categories_is_idempotent(session: AsyncSession) -> None:
    first = await categories_service.seed_default_categories(session)
    second = await categories_service.seed_default_categories(session)

    assert len(first) == len(categories_service.DEFAULT_CATEGORY_NAMES)
    assert second == []
    names = [category.name for category in await categories_service.categories_for_owner(session, None)]
    assert names == sorted(categories_service.DEFAULT_CATEGORY_NAMES)


@pytest.mark.asyncio
async def test_owner_listing_puts_system_defaults_first(session: AsyncSession) -> None:
    await categories_service.seed_default_categories(session, names=("Policies", "Guides"))
    owner = await add_owner(session)
    other = await add_owner(session)
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    await add_role(session, admin, "tenant_admin", other.id)

    await categories_service.create_category(session, actor_id=admin, name="Zebra", owner_id=owner.id)
    await categories_service.create_category(session, actor_id=admin, name="Alpha", owner_id=owner.id)
    await categories_service.create_category(session, actor_id=admin, name="Elsewhere", owner_id=other.id)

    listing = await categories_service.categories_for_owner(session, owner.id)
    assert [(category.name, category.is_custom) for category in listing] == [
        ("Guides", False),
        ("Policies", False),
        ("Alpha", True),
        ("Zebra", True),
    ]


@pytest.mark.asyncio
async def test_category_name_collisions(session: AsyncSession) -> None:
    await categories_service.seed_default_categories(session, names=("Guides",))
    owner = await add_owner(session)
    other = await add_owner(session)
    super_admin = await add_user(session)
    await add_role(session, super_admin, "super_admin")

    with pytest.raises(ValidationError):
        await categories_service.create_category(
            session, actor_id=super_admin, name="Guides", owner_id=owner.id
        )
    await categories_service.create_category(
        session, actor_id=super_admin, name="Release  Notes", owner_id=owner.id
    )
    with pytest.raises(ValidationError):
        await categories_service.create_category(
            session, actor_id=super_admin, name="Release Notes", owner_id=owner.id
        )
    # The same custom name is fine under a different owner.
    created = await categories_service.create_category(
        session, actor_id=super_admin, name="Release Notes", owner_id=other.id
    )
    assert created.is_custom
    with pytest.raises(ValidationError):
        await categories_service.create_category(session, actor_id=super_admin, name=" ", owner_id=owner.id)


@pytest.mark.asyncio
async def test_category_permissions(session: AsyncSession) -> None:
    owner = await add_owner(session)
    other = await add_owner(session)
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)

    with pytest.raises(PermissionDeniedError):
        await categories_service.create_category(session, actor_id=admin, name="System")
    with pytest.raises(PermissionDeniedError):
        await categories_service.create_category(
            session, actor_id=admin, name="Foreign", owner_id=other.id
        )
    with pytest.raises(PermissionDeniedError):
        await categories_service.create_category(session, actor_id=None, name="Anon", owner_id=owner.id)


@pytest.mark.asyncio
async def test_delete_category_detaches_documents(session: AsyncSession) -> None:
    owner = await add_owner(session)
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    category = await categories_service.create_category(
        session, actor_id=admin, name="Temporary", owner_id=owner.id
    )
    first = await add_document(session, owner_id=owner.id)
    second = await add_document(session, owner_id=owner.id)
    for document in (first, second):
        document.category_id = category.id
    await session.commit()

    detached = await categories_service.delete_category(session, actor_id=admin, category_id=category.id)

    assert detached == 2
    result = await session.execute(
        select(Document.category_id).where(Document.id.in_([first.id, second.id]))
    )
    assert result.scalars().all() == [None, None]
    with pytest.raises(NotFoundError):
        await categories_service.delete_category(session, actor_id=admin, category_id=category.id)
