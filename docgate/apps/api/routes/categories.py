from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, require_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.domain.models import Category
from docgate.services import categories as categories_service


router = APIRouter(prefix="/categories", tags=["categories"], responses=DEFAULT_ERROR_RESPONSES)


class CategoryResponse(BaseModel):
    id: int
    name: str
    is_custom: bool
    owner_id: str | None


class CategoryCreateRequest(BaseModel):
    name: str
    # Omit owner_id to create a system default (super admin only).
    owner_id: str | None = None

    model_config = {"extra": "forbid"}


class CategoryDeleted(BaseModel):
    id: int
    detached_documents: int


def _to_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        is_custom=category.is_custom,
        owner_id=category.owner_id,
    )


@router.get("", response_model=SuccessEnvelope[list[CategoryResponse]])
async def list_categories(
    request: Request,
    owner_id: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> dict:
    categories = await categories_service.categories_for_owner(db, owner_id)
    return success_response(request=request, data=[_to_response(item).model_dump() for item in categories])


@router.post("", response_model=SuccessEnvelope[CategoryResponse], status_code=201)
async def create_category(
    payload: CategoryCreateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    category = await categories_service.create_category(
        db, actor_id=actor_id, name=payload.name, owner_id=payload.owner_id
    )
    return success_response(request=request, data=_to_response(category))


@router.delete("/{category_id}", response_model=SuccessEnvelope[CategoryDeleted])
async def delete_category(
    category_id: int,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    detached = await categories_service.delete_category(db, actor_id=actor_id, category_id=category_id)
    return success_response(request=request, data=CategoryDeleted(id=category_id, detached_documents=detached))
