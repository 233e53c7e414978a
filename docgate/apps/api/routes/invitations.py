from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, require_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.domain.models import ROLE_REGISTERED, Invitation
from docgate.services import invitations as invitations_service


router = APIRouter(tags=["invitations"], responses=DEFAULT_ERROR_RESPONSES)


class InvitationCreateRequest(BaseModel):
    role: str = ROLE_REGISTERED
    email: str | None = None
    ttl_hours: int | None = Field(default=None, gt=0)

    model_config = {"extra": "forbid"}


class InvitationResponse(BaseModel):
    id: str
    owner_id: str
    role: str
    email: str | None
    token_prefix: str
    expires_at: datetime


class IssuedInvitationResponse(InvitationResponse):
    # Returned once; only the hash is stored.
    token: str


class InvitationTokenRequest(BaseModel):
    token: str = Field(min_length=1)

    model_config = {"extra": "forbid"}


class InvitationRedeemResponse(BaseModel):
    principal_id: str
    owner_id: str | None
    role: str
    created: bool


class InvitationRevokeResponse(BaseModel):
    id: str
    revoked: bool


def _to_response(invitation: Invitation) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        owner_id=invitation.owner_id,
        role=invitation.role,
        email=invitation.email,
        token_prefix=invitation.token_prefix,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/owners/{owner_id}/invitations",
    response_model=SuccessEnvelope[IssuedInvitationResponse],
    status_code=201,
)
async def create_invitation(
    owner_id: str,
    payload: InvitationCreateRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    raw_token, invitation = await invitations_service.create_invitation(
        db,
        actor_id=actor_id,
        owner_id=owner_id,
        role=payload.role,
        email=payload.email,
        ttl_hours=payload.ttl_hours,
    )
    data = IssuedInvitationResponse(**_to_response(invitation).model_dump(), token=raw_token)
    return success_response(request=request, data=data)


@router.get("/owners/{owner_id}/invitations", response_model=SuccessEnvelope[list[InvitationResponse]])
async def list_invitations(
    owner_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    invitations = await invitations_service.list_pending_invitations(
        db, actor_id=actor_id, owner_id=owner_id
    )
    data = [_to_response(invitation).model_dump(mode="json") for invitation in invitations]
    return success_response(request=request, data=data)


@router.delete("/invitations/{invitation_id}", response_model=SuccessEnvelope[InvitationRevokeResponse])
async def revoke_invitation(
    invitation_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await invitations_service.revoke_invitation(db, actor_id=actor_id, invitation_id=invitation_id)
    return success_response(request=request, data=InvitationRevokeResponse(id=invitation_id, revoked=True))


@router.post("/invitations/validate", response_model=SuccessEnvelope[InvitationResponse])
async def validate_invitation(
    payload: InvitationTokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Token in the body keeps it out of access logs.
    invitation = await invitations_service.validate_invitation(db, payload.token)
    return success_response(request=request, data=_to_response(invitation))


@router.post("/invitations/redeem", response_model=SuccessEnvelope[InvitationRedeemResponse])
async def redeem_invitation(
    payload: InvitationTokenRequest,
    request: Request,
    principal_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await invitations_service.redeem_invitation(
        db, raw_token=payload.token, principal_id=principal_id
    )
    data = InvitationRedeemResponse(
        principal_id=result.principal_id,
        owner_id=result.owner_id,
        role=result.role,
        created=result.created,
    )
    return success_response(request=request, data=data)
