from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from docgate.domain.models import Category, Document, RoleAssignment, TenantAccessGrant
from docgate.services import owners as owners_service
from docgate.tests.utils.factories import add_document, add_grant, add_owner, add_role, add_user


async def _super_admin(session: AsyncSession) -> str:
    principal = await add_user(session)
    await add_role(session, principal, "super_admin")
    return principal


@pytest.mark.asyncio
async def test_create_owner(session: AsyncSession) -> None:
    actor = await _super_admin(session)

    owner = await owners_service.create_owner(
        session,
        actor_id=actor,
        slug="acme",
        name=" Acme Corp ",
        plan_tier="enterprise",
        custom_domain="Docs.Acme.COM ",
        default_chunk_limit=25,
        branding={"accent_color": "#ff0000", "unrelated": "ignored"},
    )

    assert owner.slug == "acme"
    assert owner.name == "Acme Corp"
    assert owner.plan_tier == "enterprise"
    assert owner.custom_domain == "docs.acme.com"
    assert owner.default_chunk_limit == 25
    assert owner.accent_color == "#ff0000"


@pytest.mark.asyncio
async def test_owner_management_is_super_admin_only(session: AsyncSession) -> None:
    owner = await add_owner(session)
    tenant_admin = await add_user(session)
    await add_role(session, tenant_admin, "tenant_admin", owner.id)

    with pytest.raises(PermissionDeniedError):
        await owners_service.create_owner(session, actor_id=tenant_admin, slug="new-owner", name="New")
    with pytest.raises(PermissionDeniedError):
        await owners_service.update_owner(
            session, actor_id=tenant_admin, owner_id=owner.id, changes={"plan_tier": "unlimited"}
        )
    with pytest.raises(PermissionDeniedError):
        await owners_service.delete_owner(session, actor_id=tenant_admin, owner_id=owner.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"slug": "Not A Slug"},
        {"name": "  "},
        {"plan_tier": "platinum"},
        {"default_chunk_limit": 0},
        {"default_chunk_limit": 500},
        {"forced_model": "unknown-model"},
    ],
)
async def test_create_owner_validation(session: AsyncSession, overrides: dict) -> None:
    actor = await _super_admin(session)
    kwargs = {"slug": "fine", "name": "Fine", **overrides}
    with pytest.raises(ValidationError):
        await owners_service.create_owner(session, actor_id=actor, **kwargs)


@pytest.mark.asyncio
async def test_slug_and_domain_are_unique(session: AsyncSession) -> None:
    actor = await _super_admin(session)
    await owners_service.create_owner(
        session, actor_id=actor, slug="first", name="First", custom_domain="first.example.com"
    )
    second = await owners_service.create_owner(session, actor_id=actor, slug="second", name="Second")

    with pytest.raises(ValidationError):
        await owners_service.create_owner(session, actor_id=actor, slug="first", name="Dup")
    with pytest.raises(ValidationError):
        await owners_service.update_owner(
            session, actor_id=actor, owner_id=second.id, changes={"custom_domain": "FIRST.example.com"}
        )


@pytest.mark.asyncio
async def test_update_owner(session: AsyncSession) -> None:
    actor = await _super_admin(session)
    owner = await add_owner(session, slug="before")

    updated = await owners_service.update_owner(
        session,
        actor_id=actor,
        owner_id=owner.id,
        changes={"slug": "before", "plan_tier": None, "forced_model": "grok-reasoning", "logo_url": "https://x"},
    )
    assert updated.slug == "before"
    assert updated.plan_tier is None
    assert updated.forced_model == "grok-reasoning"
    assert updated.logo_url == "https://x"

    with pytest.raises(ValidationError):
        await owners_service.update_owner(
            session, actor_id=actor, owner_id=owner.id, changes={"default_chunk_limit": None}
        )
    with pytest.raises(ValidationError):
        await owners_service.update_owner(
            session, actor_id=actor, owner_id=owner.id, changes={"id": "new-id"}
        )
    with pytest.raises(NotFoundError):
        await owners_service.update_owner(session, actor_id=actor, owner_id="missing", changes={})


@pytest.mark.asyncio
async def test_delete_owner_detaches_documents_and_drops_memberships(session: AsyncSession) -> None:
    actor = await _super_admin(session)
    owner = await add_owner(session)
    member = await add_user(session)
    await add_role(session, member, "registered", owner.id)
    await add_grant(session, member, owner.id)
    document = await add_document(session, owner_id=owner.id)
    session.add(Category(name="Owner Only", is_custom=True, owner_id=owner.id))
    await session.commit()

    await owners_service.delete_owner(session, actor_id=actor, owner_id=owner.id)

    remaining_owner = await session.execute(select(Document.owner_id).where(Document.id == document.id))
    assert remaining_owner.scalar_one() is None
    for model in (RoleAssignment, TenantAccessGrant, Category):
        count = await session.execute(
            select(func.count()).select_from(model).where(model.owner_id == owner.id)
        )
        assert count.scalar() == 0
    # The global super admin row is untouched.
    count = await session.execute(select(func.count()).select_from(RoleAssignment))
    assert count.scalar() == 1
