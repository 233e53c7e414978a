from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import NotFoundError, ValidationError
from docgate.domain.models import Category
from docgate.persistence.repos import categories as categories_repo
from docgate.persistence.repos import owners as owners_repo
from docgate.persistence.transactions import unit_of_work
from docgate.services.roles import load_principal_roles, require_owner_admin, require_super_admin


logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_NAMES = (
    "Guides",
    "Policies",
    "Product",
    "Research",
    "Training",
    "Other",
)


def _normalize_name(name: str | None) -> str:
    normalized = " ".join((name or "").split())
    if not normalized:
        raise ValidationError("Category name is required", details={"field": "name"})
    return normalized


async def seed_default_categories(
    session: AsyncSession, names: Iterable[str] = DEFAULT_CATEGORY_NAMES
) -> list[Category]:
    # Idempotent: existing system defaults are left untouched.
    created: list[Category] = []
    async with unit_of_work(session):
        for raw_name in names:
            name = _normalize_name(raw_name)
            if await categories_repo.find_by_name(session, name, owner_id=None) is not None:
                continue
            category = Category(name=name, is_custom=False, owner_id=None)
            session.add(category)
            created.append(category)
        await session.flush()
    if created:
        logger.info("default_categories_seeded count=%s", len(created))
    return created


async def categories_for_owner(session: AsyncSession, owner_id: str | None) -> list[Category]:
    return await categories_repo.list_for_owner(session, owner_id)


async def create_category(
    session: AsyncSession,
    *,
    actor_id: str | None,
    name: str,
    owner_id: str | None = None,
) -> Category:
    """Create a category for one owner, or a system default when ``owner_id`` is None.

    Owner categories may not shadow a system default, and names are unique within
    their scope.
    """
    actor = await load_principal_roles(session, actor_id)
    if owner_id is None:
        require_super_admin(actor)
    else:
        require_owner_admin(actor, owner_id)
        if await owners_repo.get_owner(session, owner_id) is None:
            raise ValidationError("Unknown owner", details={"owner_id": owner_id})
    name = _normalize_name(name)

    if await categories_repo.find_by_name(session, name, owner_id=None) is not None:
        raise ValidationError(
            "Category name collides with a system default", details={"name": name}
        )
    if owner_id is not None and await categories_repo.find_by_name(
        session, name, owner_id=owner_id
    ) is not None:
        raise ValidationError("Category name already exists for this owner", details={"name": name})

    async with unit_of_work(session):
        category = Category(
            name=name,
            is_custom=owner_id is not None,
            owner_id=owner_id,
            created_by=actor_id,
        )
        session.add(category)
        await session.flush()
    logger.info(
        "category_created category_id=%s owner_id=%s actor_id=%s", category.id, owner_id, actor_id
    )
    return category


async def delete_category(session: AsyncSession, *, actor_id: str | None, category_id: int) -> int:
    # Returns how many documents were detached from the category.
    category = await categories_repo.get_category(session, category_id)
    if category is None:
        raise NotFoundError("Category not found", details={"category_id": category_id})
    actor = await load_principal_roles(session, actor_id)
    if category.owner_id is None:
        require_super_admin(actor)
    else:
        require_owner_admin(actor, category.owner_id)

    async with unit_of_work(session):
        detached = await categories_repo.detach_documents(session, category_id)
        await session.delete(category)
        await session.flush()
    logger.info(
        "category_deleted category_id=%s owner_id=%s detached_documents=%s actor_id=%s",
        category_id,
        category.owner_id,
        detached,
        actor_id,
    )
    return detached
