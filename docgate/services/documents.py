from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from docgate.domain.models import (
    ACCESS_LEVELS,
    ACCESS_OWNER_RESTRICTED,
    CHUNK_LIMIT_MAX,
    CHUNK_LIMIT_MIN,
    FORCED_MODELS,
    SLUG_PATTERN,
    Document,
)
from docgate.persistence.repos import categories as categories_repo
from docgate.persistence.repos import documents as documents_repo
from docgate.persistence.repos import owners as owners_repo
from docgate.persistence.transactions import unit_of_work
from docgate.services.access import decide_access
from docgate.services.plan_tiers import enforce_document_quota
from docgate.services.roles import (
    PrincipalRoles,
    can_manage_document,
    load_principal_roles,
    require_authenticated,
    require_document_admin,
    require_owner_admin,
)


logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "access_level",
        "passcode",
        "owner_id",
        "chunk_limit_override",
        "forced_model",
        "category_id",
        "active",
    }
)


def _validate_slug(slug: str) -> str:
    normalized = (slug or "").strip()
    if not SLUG_PATTERN.match(normalized):
        raise ValidationError(
            "Slug must be lowercase letters, digits and single hyphens",
            details={"slug": slug},
        )
    return normalized


def _validate_title(title: str | None) -> str:
    normalized = (title or "").strip()
    if not normalized:
        raise ValidationError("Title is required", details={"field": "title"})
    return normalized


def _validate_access_level(access_level: str) -> str:
    if access_level not in ACCESS_LEVELS:
        raise ValidationError(
            "Unknown access level",
            details={"access_level": access_level, "allowed": list(ACCESS_LEVELS)},
        )
    return access_level


def validate_chunk_limit(value: int | None, *, field: str = "chunk_limit_override") -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Chunk limit must be an integer", details={field: value})
    if not CHUNK_LIMIT_MIN <= value <= CHUNK_LIMIT_MAX:
        raise ValidationError(
            f"Chunk limit must be between {CHUNK_LIMIT_MIN} and {CHUNK_LIMIT_MAX}",
            details={field: value},
        )
    return value


def validate_forced_model(value: str | None) -> str | None:
    if value is None:
        return None
    if value not in FORCED_MODELS:
        raise ValidationError(
            "Unknown forced model", details={"forced_model": value, "allowed": list(FORCED_MODELS)}
        )
    return value


async def _validate_category(
    session: AsyncSession, category_id: int | None, owner_id: str | None
) -> int | None:
    # Documents may use system defaults or their own owner's categories.
    if category_id is None:
        return None
    category = await categories_repo.get_category(session, category_id)
    if category is None:
        raise ValidationError("Unknown category", details={"category_id": category_id})
    if category.owner_id is not None and category.owner_id != owner_id:
        raise ValidationError(
            "Category belongs to another owner", details={"category_id": category_id}
        )
    return category_id


async def _require_owner_exists(session: AsyncSession, owner_id: str) -> None:
    if await owners_repo.get_owner(session, owner_id) is None:
        raise ValidationError("Unknown owner", details={"owner_id": owner_id})


async def create_document(
    session: AsyncSession,
    *,
    actor_id: str | None,
    slug: str,
    title: str,
    owner_id: str | None = None,
    access_level: str = "public",
    passcode: str | None = None,
    chunk_limit_override: int | None = None,
    forced_model: str | None = None,
    category_id: int | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Document:
    """Create a tenant document or a private upload.

    Tenant documents require an admin of that owner and pass the plan quota under
    the owner row lock. Documents without an owner are private uploads: they are
    always ``owner_restricted`` and keyed to the uploader via ``metadata["user_id"]``.
    """
    actor = require_authenticated(await load_principal_roles(session, actor_id))
    slug = _validate_slug(slug)
    title = _validate_title(title)
    metadata_json = dict(metadata or {})
    if owner_id is not None:
        require_owner_admin(actor, owner_id)
        await _require_owner_exists(session, owner_id)
        access_level = _validate_access_level(access_level)
    else:
        access_level = ACCESS_OWNER_RESTRICTED
        metadata_json["user_id"] = actor.principal_id
    chunk_limit_override = validate_chunk_limit(chunk_limit_override)
    forced_model = validate_forced_model(forced_model)
    category_id = await _validate_category(session, category_id, owner_id)

    async with unit_of_work(session):
        if owner_id is not None:
            await enforce_document_quota(session, owner_id)
        if await documents_repo.slug_taken(session, slug):
            raise ValidationError("Slug already in use", details={"slug": slug})
        document = Document(
            id=uuid4().hex,
            slug=slug,
            title=title,
            owner_id=owner_id,
            access_level=access_level,
            passcode=passcode or None,
            chunk_limit_override=chunk_limit_override,
            forced_model=forced_model,
            category_id=category_id,
            active=True,
            metadata_json=metadata_json,
        )
        session.add(document)
        await session.flush()

    logger.info(
        "document_created document_id=%s owner_id=%s access_level=%s actor_id=%s",
        document.id,
        owner_id,
        access_level,
        actor.principal_id,
    )
    return document


async def _require_document(session: AsyncSession, document_id: str) -> Document:
    document = await documents_repo.get_document(session, document_id)
    if document is None:
        raise NotFoundError("Document not found", details={"document_id": document_id})
    return document


async def update_document(
    session: AsyncSession,
    *,
    actor_id: str | None,
    document_id: str,
    changes: Mapping[str, Any],
) -> Document:
    # Partial update: only keys present in ``changes`` are written.
    document = await _require_document(session, document_id)
    actor = require_document_admin(await load_principal_roles(session, actor_id), document)

    unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError("Unknown document fields", details={"fields": unknown})

    values: dict[str, Any] = {}
    if "title" in changes:
        values["title"] = _validate_title(changes["title"])
    if "access_level" in changes:
        values["access_level"] = _validate_access_level(changes["access_level"])
    if "passcode" in changes:
        values["passcode"] = changes["passcode"] or None
    if "chunk_limit_override" in changes:
        values["chunk_limit_override"] = validate_chunk_limit(changes["chunk_limit_override"])
    if "forced_model" in changes:
        values["forced_model"] = validate_forced_model(changes["forced_model"])
    if "active" in changes:
        values["active"] = bool(changes["active"])

    target_owner_id = document.owner_id
    if "owner_id" in changes and changes["owner_id"] != document.owner_id:
        target_owner_id = changes["owner_id"]
        if target_owner_id is None:
            if not actor.is_super_admin:
                raise PermissionDeniedError("Only super admins may detach documents from owners")
        else:
            require_owner_admin(actor, target_owner_id)
            await _require_owner_exists(session, target_owner_id)
        values["owner_id"] = target_owner_id
    if "category_id" in changes or "owner_id" in values:
        category_id = changes.get("category_id", document.category_id)
        values["category_id"] = await _validate_category(session, category_id, target_owner_id)

    # Moving an active document into an owner, or reactivating one, consumes quota.
    becomes_active = values.get("active", document.active)
    joins_owner = "owner_id" in values or (becomes_active and not document.active)
    quota_owner_id = target_owner_id if becomes_active and joins_owner else None

    async with unit_of_work(session):
        if quota_owner_id is not None:
            await enforce_document_quota(session, quota_owner_id)
        for field, value in values.items():
            setattr(document, field, value)
        await session.flush()

    logger.info(
        "document_updated document_id=%s fields=%s actor_id=%s",
        document.id,
        ",".join(sorted(values)),
        actor.principal_id,
    )
    return document


async def deactivate_document(
    session: AsyncSession, *, actor_id: str | None, document_id: str
) -> Document:
    # Soft delete; admins can still load and reactivate the row.
    document = await _require_document(session, document_id)
    actor = require_document_admin(await load_principal_roles(session, actor_id), document)
    if not document.active:
        return document
    async with unit_of_work(session):
        document.active = False
        await session.flush()
    logger.info(
        "document_deactivated document_id=%s owner_id=%s actor_id=%s",
        document.id,
        document.owner_id,
        actor.principal_id,
    )
    return document


async def read_document(
    session: AsyncSession,
    *,
    principal_id: str | None,
    identifier: str,
    passcode: str | None = None,
) -> Document:
    """Load a document by id or slug for display.

    Callers who may administer the document see inactive rows and get a
    ``PermissionDeniedError`` on denial; everyone else gets ``NotFoundError`` for
    both missing and forbidden documents.
    """
    document = await documents_repo.resolve_document(session, identifier)
    principal: PrincipalRoles | None = await load_principal_roles(session, principal_id)
    admin_context = document is not None and can_manage_document(principal, document)
    decision = decide_access(document, principal, passcode, admin_context=admin_context)
    if decision.allowed and document is not None:
        return document
    if admin_context:
        raise PermissionDeniedError("Access denied", details={"reason": decision.reason})
    raise NotFoundError("Document not found")
