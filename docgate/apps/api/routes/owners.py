from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, require_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.domain.models import DEFAULT_CHUNK_LIMIT, Owner
from docgate.persistence.repos import owners as owners_repo
from docgate.services import owners as owners_service
from docgate.services import plan_tiers
from docgate.services import roles as roles_service


router = APIRouter(prefix="/owners", tags=["owners"], responses=DEFAULT_ERROR_RESPONSES)


class OwnerResponse(BaseModel):
    id: str
    slug: str
    name: str
    plan_tier: str | None
    custom_domain: str | None
    default_chunk_limit: int
    forced_model: str | None
    logo_url: str | None
    accent_color: str | None
    cover_image_url: str | None
    intro_message: str | None


class OwnerCreateRequest(BaseModel):
    slug: str
    name: str
    plan_tier: str | None = None
    custom_domain: str | None = None
    # Range checks live in the service so API and scripts share one rule.
    default_chunk_limit: int = DEFAULT_CHUNK_LIMIT
    forced_model: str | None = None
    logo_url: str | None = None
    accent_color: str | None = None
    cover_image_url: str | None = None
    intro_message: str | None = None

    model_config = {"extra": "forbid"}


class OwnerUpdateRequest(BaseModel):
    slug: str | None = None
    name: str | None = None
    plan_tier: str | None = None
    custom_domain: str | None = None
    default_chunk_limit: int | None = None
    forced_model: str | None = None
    logo_url: str | None = None
    accent_color: str | None = None
    cover_image_url: str | None = None
    intro_message: str | None = None

    model_config = {"extra": "forbid"}


class QuotaStatusResponse(BaseModel):
    owner_id: str
    plan_tier: str
    limit: int | None = Field(description="Active document ceiling; null means unlimited")
    current_count: int
    can_add_document: bool
    can_use_voice_training: bool


class OwnerDeleted(BaseModel):
    id: str
    deleted: bool


_BRANDING = ("logo_url", "accent_color", "cover_image_url", "intro_message")


def _to_response(owner: Owner) -> OwnerResponse:
    return OwnerResponse(
        id=owner.id,
        slug=owner.slug,
        name=owner.name,
        plan_tier=owner.plan_tier,
        custom_domain=owner.custom_domain,
        default_chunk_limit=owner.default_chunk_limit,
        forced_model=owner.forced_model,
        logo_url=owner.logo_url,
        accent_color=owner.accent_color,
        cover_image_url=owner.cover_image_url,
        intro_message=owner.intro_message,
    )


@router.get("", response_model=SuccessEnvelope[list[OwnerResponse]])
async def list_owners(
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    roles_service.require_super_admin(await roles_service.load_principal_roles(db, actor_id))
    owners = await owners_repo.list_owners(db)
    return success_response(request=request, data=[_to_response(owner).model_dump() for owner in owners])


@router.post("", response_model=SuccessEnvelope[OwnerResponse], status_code=201)
async def create_owner(
    payload: OwnerCreateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    owner = await owners_service.create_owner(
        db,
        actor_id=actor_id,
        slug=payload.slug,
        name=payload.name,
        plan_tier=payload.plan_tier,
        custom_domain=payload.custom_domain,
        default_chunk_limit=payload.default_chunk_limit,
        forced_model=payload.forced_model,
        branding={key: getattr(payload, key) for key in _BRANDING},
    )
    return success_response(request=request, data=_to_response(owner))


@router.patch("/{owner_id}", response_model=SuccessEnvelope[OwnerResponse])
async def update_owner(
    owner_id: str,
    payload: OwnerUpdateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    owner = await owners_service.update_owner(
        db,
        actor_id=actor_id,
        owner_id=owner_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return success_response(request=request, data=_to_response(owner))


@router.delete("/{owner_id}", response_model=SuccessEnvelope[OwnerDeleted])
async def delete_owner(
    owner_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await owners_service.delete_owner(db, actor_id=actor_id, owner_id=owner_id)
    return success_response(request=request, data=OwnerDeleted(id=owner_id, deleted=True))


@router.get("/{owner_id}/quota", response_model=SuccessEnvelope[QuotaStatusResponse])
async def get_quota(
    owner_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    roles_service.require_owner_admin(await roles_service.load_principal_roles(db, actor_id), owner_id)
    status = await plan_tiers.quota_status(db, owner_id)
    data = QuotaStatusResponse(
        owner_id=status.owner_id,
        plan_tier=status.plan_tier,
        limit=status.limit,
        current_count=status.current_count,
        can_add_document=status.can_add_document,
        can_use_voice_training=status.can_use_voice_training,
    )
    return success_response(request=request, data=data)
