from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, get_principal_id, require_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.domain.models import ACCESS_PUBLIC, Document
from docgate.persistence.repos import owners as owners_repo
from docgate.services import access as access_service
from docgate.services import chunk_limits
from docgate.services import documents as documents_service


router = APIRouter(prefix="/documents", tags=["documents"], responses=DEFAULT_ERROR_RESPONSES)


class DocumentResponse(BaseModel):
    id: str
    slug: str
    title: str
    owner_id: str | None
    access_level: str
    has_passcode: bool
    category_id: int | None
    active: bool
    chunk_limit: int
    forced_model: str | None
    metadata: dict[str, Any]


class DocumentCreateRequest(BaseModel):
    slug: str
    title: str
    # Omit owner_id for a private upload.
    owner_id: str | None = None
    access_level: str = ACCESS_PUBLIC
    passcode: str | None = None
    chunk_limit_override: int | None = None
    forced_model: str | None = None
    category_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


class DocumentUpdateRequest(BaseModel):
    title: str | None = None
    access_level: str | None = None
    passcode: str | None = None
    owner_id: str | None = None
    chunk_limit_override: int | None = None
    forced_model: str | None = None
    category_id: int | None = None
    active: bool | None = None

    model_config = {"extra": "forbid"}


async def _to_response(db: AsyncSession, document: Document) -> DocumentResponse:
    owner = None
    if document.owner_id is not None:
        owner = await owners_repo.get_owner(db, document.owner_id)
    return DocumentResponse(
        id=document.id,
        slug=document.slug,
        title=document.title,
        owner_id=document.owner_id,
        access_level=document.access_level,
        # Never echo the passcode itself.
        has_passcode=bool(document.passcode),
        category_id=document.category_id,
        active=document.active,
        chunk_limit=chunk_limits.effective_chunk_limit(document, owner),
        forced_model=chunk_limits.resolve_forced_model(document, owner),
        metadata=document.metadata_json or {},
    )


@router.get("", response_model=SuccessEnvelope[list[DocumentResponse]])
async def list_documents(
    request: Request,
    owner_id: str | None = None,
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    documents = await access_service.accessible_documents(db, principal_id, owner_id=owner_id)
    items = [(await _to_response(db, document)).model_dump() for document in documents]
    return success_response(request=request, data=items)


@router.post("", response_model=SuccessEnvelope[DocumentResponse], status_code=201)
async def create_document(
    payload: DocumentCreateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.create_document(
        db,
        actor_id=actor_id,
        slug=payload.slug,
        title=payload.title,
        owner_id=payload.owner_id,
        access_level=payload.access_level,
        passcode=payload.passcode,
        chunk_limit_override=payload.chunk_limit_override,
        forced_model=payload.forced_model,
        category_id=payload.category_id,
        metadata=payload.metadata,
    )
    return success_response(request=request, data=await _to_response(db, document))


@router.get("/{identifier}", response_model=SuccessEnvelope[DocumentResponse])
async def get_document(
    identifier: str,
    request: Request,
    passcode: str | None = Header(default=None, alias="X-Document-Passcode"),
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.read_document(
        db, principal_id=principal_id, identifier=identifier, passcode=passcode
    )
    return success_response(request=request, data=await _to_response(db, document))


@router.patch("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def update_document(
    document_id: str,
    payload: DocumentUpdateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.update_document(
        db,
        actor_id=actor_id,
        document_id=document_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return success_response(request=request, data=await _to_response(db, document))


@router.delete("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def deactivate_document(
    document_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    document = await documents_service.deactivate_document(
        db, actor_id=actor_id, document_id=document_id
    )
    return success_response(request=request, data=await _to_response(db, document))
