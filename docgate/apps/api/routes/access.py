from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, get_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.services import access as access_service


router = APIRouter(prefix="/access", tags=["access"], responses=DEFAULT_ERROR_RESPONSES)


class AccessCheckRequest(BaseModel):
    # Either a slug or a document id; slugs are tried first.
    document: str = Field(min_length=1)
    passcode: str | None = None

    model_config = {"extra": "forbid"}


class AccessCheckResponse(BaseModel):
    document: str
    allowed: bool


class BatchAccessRequest(BaseModel):
    documents: list[str] = Field(min_length=1, max_length=500)
    passcodes: dict[str, str] | None = None

    model_config = {"extra": "forbid"}


class BatchAccessResponse(BaseModel):
    results: dict[str, bool]


@router.post("/check", response_model=SuccessEnvelope[AccessCheckResponse])
async def check_access(
    payload: AccessCheckRequest,
    request: Request,
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Unknown documents answer False, never 404, to avoid leaking existence.
    allowed = await access_service.can_access(db, principal_id, payload.document, payload.passcode)
    data = AccessCheckResponse(document=payload.document, allowed=allowed)
    return success_response(request=request, data=data)


@router.post("/check-batch", response_model=SuccessEnvelope[BatchAccessResponse])
async def check_access_batch(
    payload: BatchAccessRequest,
    request: Request,
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    results = await access_service.can_access_many(
        db, principal_id, payload.documents, passcodes=payload.passcodes
    )
    return success_response(request=request, data=BatchAccessResponse(results=results))
