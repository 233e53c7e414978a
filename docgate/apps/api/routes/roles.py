from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, require_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.domain.roles import Unassigned
from docgate.services import grants as grants_service
from docgate.services import roles as roles_service


router = APIRouter(tags=["roles"], responses=DEFAULT_ERROR_RESPONSES)


class RoleItem(BaseModel):
    role: str
    owner_id: str | None = None


class PrincipalRolesResponse(BaseModel):
    principal_id: str
    roles: list[RoleItem]
    is_super_admin: bool
    admin_owner_ids: list[str]
    accessible_owners: dict[str, str]


class RoleGrantRequest(BaseModel):
    principal_id: str = Field(min_length=1)
    role: str
    owner_id: str | None = None

    model_config = {"extra": "forbid"}


class RoleGrantResponse(BaseModel):
    principal_id: str
    role: str
    owner_id: str | None
    created: bool
    removed_grants: int
    removed_registered: int


class RoleRevokeResponse(BaseModel):
    revoked: bool


class MembersResponse(BaseModel):
    owner_id: str
    principal_ids: list[str]


class MemberGrantResponse(BaseModel):
    owner_id: str
    principal_id: str
    changed: bool


@router.get("/principals/{principal_id}/roles", response_model=SuccessEnvelope[PrincipalRolesResponse])
async def get_principal_roles(
    principal_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # Principals may read their own roles; reading someone else's needs super admin.
    if principal_id != actor_id:
        roles_service.require_super_admin(await roles_service.load_principal_roles(db, actor_id))
    snapshot = await roles_service.load_principal_roles(db, principal_id)
    resolved = await roles_service.roles_for(db, principal_id)
    items = [] if isinstance(resolved, Unassigned) else [
        RoleItem(role=role.name, owner_id=role.tenant_id) for role in resolved
    ]
    data = PrincipalRolesResponse(
        principal_id=principal_id,
        roles=items,
        is_super_admin=bool(snapshot and snapshot.is_super_admin),
        admin_owner_ids=await roles_service.admin_tenants(db, principal_id),
        accessible_owners=await roles_service.accessible_tenants(db, principal_id),
    )
    return success_response(request=request, data=data)


@router.post("/roles", response_model=SuccessEnvelope[RoleGrantResponse])
async def grant_role(
    payload: RoleGrantRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await grants_service.grant_role(
        db,
        actor_id=actor_id,
        principal_id=payload.principal_id,
        role=payload.role,
        owner_id=payload.owner_id,
    )
    data = RoleGrantResponse(
        principal_id=result.principal_id,
        role=result.role,
        owner_id=result.owner_id,
        created=result.created,
        removed_grants=result.removed_grants,
        removed_registered=result.removed_registered,
    )
    return success_response(request=request, data=data)


@router.post("/roles/revoke", response_model=SuccessEnvelope[RoleRevokeResponse])
async def revoke_role(
    payload: RoleGrantRequest,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    revoked = await grants_service.revoke_role(
        db,
        actor_id=actor_id,
        principal_id=payload.principal_id,
        role=payload.role,
        owner_id=payload.owner_id,
    )
    return success_response(request=request, data=RoleRevokeResponse(revoked=revoked))


@router.get("/owners/{owner_id}/members", response_model=SuccessEnvelope[MembersResponse])
async def list_members(
    owner_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    roles_service.require_owner_admin(await roles_service.load_principal_roles(db, actor_id), owner_id)
    members = await roles_service.tenant_members(db, owner_id)
    return success_response(request=request, data=MembersResponse(owner_id=owner_id, principal_ids=members))


@router.put(
    "/owners/{owner_id}/members/{principal_id}",
    response_model=SuccessEnvelope[MemberGrantResponse],
)
async def grant_member_access(
    owner_id: str,
    principal_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    changed = await grants_service.grant_tenant_access(
        db, actor_id=actor_id, principal_id=principal_id, owner_id=owner_id
    )
    data = MemberGrantResponse(owner_id=owner_id, principal_id=principal_id, changed=changed)
    return success_response(request=request, data=data)


@router.delete(
    "/owners/{owner_id}/members/{principal_id}",
    response_model=SuccessEnvelope[MemberGrantResponse],
)
async def revoke_member_access(
    owner_id: str,
    principal_id: str,
    request: Request,
    actor_id: str = Depends(require_principal_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    changed = await grants_service.revoke_tenant_access(
        db, actor_id=actor_id, principal_id=principal_id, owner_id=owner_id
    )
    data = MemberGrantResponse(owner_id=owner_id, principal_id=principal_id, changed=changed)
    return success_response(request=request, data=data)
