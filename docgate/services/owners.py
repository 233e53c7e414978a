from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import NotFoundError, ValidationError
from docgate.domain.models import DEFAULT_CHUNK_LIMIT, PLAN_TIERS, SLUG_PATTERN, Owner
from docgate.persistence.repos import owners as owners_repo
from docgate.persistence.transactions import unit_of_work
from docgate.services.documents import validate_chunk_limit, validate_forced_model
from docgate.services.roles import load_principal_roles, require_super_admin


logger = logging.getLogger(__name__)

_BRANDING_FIELDS = ("logo_url", "accent_color", "cover_image_url", "intro_message")
_UPDATABLE_FIELDS = frozenset(
    {"slug", "name", "plan_tier", "custom_domain", "default_chunk_limit", "forced_model"}
    | set(_BRANDING_FIELDS)
)


def _validate_owner_slug(slug: str) -> str:
    normalized = (slug or "").strip()
    if not SLUG_PATTERN.match(normalized):
        raise ValidationError(
            "Slug must be lowercase letters, digits and single hyphens",
            details={"slug": slug},
        )
    return normalized


def _validate_plan_tier(plan_tier: str | None) -> str | None:
    # NULL is allowed and resolves to the default tier at check time.
    if plan_tier is None:
        return None
    if plan_tier not in PLAN_TIERS:
        raise ValidationError(
            "Unknown plan tier", details={"plan_tier": plan_tier, "allowed": list(PLAN_TIERS)}
        )
    return plan_tier


def _normalize_domain(custom_domain: str | None) -> str | None:
    normalized = (custom_domain or "").strip().lower()
    return normalized or None


async def _check_unique(
    session: AsyncSession,
    *,
    slug: str | None,
    custom_domain: str | None,
    exclude_id: str | None = None,
) -> None:
    if slug is not None and await owners_repo.slug_taken(session, slug, exclude_id=exclude_id):
        raise ValidationError("Slug already in use", details={"slug": slug})
    if custom_domain is not None and await owners_repo.custom_domain_taken(
        session, custom_domain, exclude_id=exclude_id
    ):
        raise ValidationError(
            "Custom domain already in use", details={"custom_domain": custom_domain}
        )


async def create_owner(
    session: AsyncSession,
    *,
    actor_id: str | None,
    slug: str,
    name: str,
    plan_tier: str | None = None,
    custom_domain: str | None = None,
    default_chunk_limit: int = DEFAULT_CHUNK_LIMIT,
    forced_model: str | None = None,
    branding: Mapping[str, str | None] | None = None,
) -> Owner:
    actor = require_super_admin(await load_principal_roles(session, actor_id))
    slug = _validate_owner_slug(slug)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required", details={"field": "name"})
    plan_tier = _validate_plan_tier(plan_tier)
    custom_domain = _normalize_domain(custom_domain)
    validate_chunk_limit(default_chunk_limit, field="default_chunk_limit")
    forced_model = validate_forced_model(forced_model)
    branding_values = {key: value for key, value in (branding or {}).items() if key in _BRANDING_FIELDS}

    await _check_unique(session, slug=slug, custom_domain=custom_domain)
    async with unit_of_work(session):
        owner = Owner(
            id=uuid4().hex,
            slug=slug,
            name=name,
            plan_tier=plan_tier,
            custom_domain=custom_domain,
            default_chunk_limit=default_chunk_limit,
            forced_model=forced_model,
            metadata_json={},
            **branding_values,
        )
        session.add(owner)
        await session.flush()
    logger.info(
        "owner_created owner_id=%s slug=%s plan_tier=%s actor_id=%s",
        owner.id,
        slug,
        plan_tier,
        actor.principal_id,
    )
    return owner


async def _require_owner(session: AsyncSession, owner_id: str) -> Owner:
    owner = await owners_repo.get_owner(session, owner_id)
    if owner is None:
        raise NotFoundError("Owner not found", details={"owner_id": owner_id})
    return owner


async def update_owner(
    session: AsyncSession,
    *,
    actor_id: str | None,
    owner_id: str,
    changes: Mapping[str, Any],
) -> Owner:
    actor = require_super_admin(await load_principal_roles(session, actor_id))
    owner = await _require_owner(session, owner_id)
    unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError("Unknown owner fields", details={"fields": unknown})

    values: dict[str, Any] = {}
    if "slug" in changes:
        values["slug"] = _validate_owner_slug(changes["slug"])
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise ValidationError("Name is required", details={"field": "name"})
        values["name"] = name
    if "plan_tier" in changes:
        values["plan_tier"] = _validate_plan_tier(changes["plan_tier"])
    if "custom_domain" in changes:
        values["custom_domain"] = _normalize_domain(changes["custom_domain"])
    if "default_chunk_limit" in changes:
        limit = changes["default_chunk_limit"]
        if limit is None:
            raise ValidationError("Default chunk limit is required", details={"field": "default_chunk_limit"})
        values["default_chunk_limit"] = validate_chunk_limit(limit, field="default_chunk_limit")
    if "forced_model" in changes:
        values["forced_model"] = validate_forced_model(changes["forced_model"])
    for key in _BRANDING_FIELDS:
        if key in changes:
            values[key] = changes[key]

    await _check_unique(
        session,
        slug=values.get("slug"),
        custom_domain=values.get("custom_domain"),
        exclude_id=owner.id,
    )
    async with unit_of_work(session):
        for field, value in values.items():
            setattr(owner, field, value)
        await session.flush()
    logger.info(
        "owner_updated owner_id=%s fields=%s actor_id=%s",
        owner.id,
        ",".join(sorted(values)),
        actor.principal_id,
    )
    return owner


async def delete_owner(session: AsyncSession, *, actor_id: str | None, owner_id: str) -> None:
    # Foreign keys detach documents and cascade roles, grants and custom categories.
    actor = require_super_admin(await load_principal_roles(session, actor_id))
    owner = await _require_owner(session, owner_id)
    async with unit_of_work(session):
        await session.delete(owner)
        await session.flush()
    logger.info("owner_deleted owner_id=%s actor_id=%s", owner_id, actor.principal_id)
