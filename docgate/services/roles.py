from __future__ import annotations

from dataclasses import dataclass, field
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import PermissionDeniedError
from docgate.domain.models import Document
from docgate.domain.roles import (
    Registered,
    Role,
    SuperAdmin,
    TenantAdmin,
    Unassigned,
    role_from_row,
    role_rank,
)
from docgate.persistence.repos import roles as roles_repo


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrincipalRoles:
    # Snapshot of everything the access rules need to know about one principal.
    principal_id: str
    roles: tuple[Role, ...] = ()
    grant_owner_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_super_admin(self) -> bool:
        return any(isinstance(role, SuperAdmin) for role in self.roles)

    @property
    def is_unassigned(self) -> bool:
        return not self.roles and not self.grant_owner_ids

    def is_tenant_admin(self, owner_id: str | None) -> bool:
        if owner_id is None:
            return False
        return TenantAdmin(owner_id) in self.roles

    def is_tenant_member(self, owner_id: str | None) -> bool:
        # Direct grants and registered/tenant_admin roles all confer membership.
        if owner_id is None:
            return False
        if owner_id in self.grant_owner_ids:
            return True
        return Registered(owner_id) in self.roles or TenantAdmin(owner_id) in self.roles

    def admin_owner_ids(self) -> list[str]:
        return sorted(role.tenant_id for role in self.roles if isinstance(role, TenantAdmin))

    def resolved(self) -> tuple[Role, ...] | Unassigned:
        if not self.roles:
            return Unassigned()
        return self.roles


async def load_principal_roles(session: AsyncSession, principal_id: str | None) -> PrincipalRoles | None:
    # Anonymous callers have no role snapshot at all.
    if not principal_id:
        return None
    role_rows = await roles_repo.list_role_rows(session, principal_id)
    grant_rows = await roles_repo.list_grant_rows(session, principal_id)
    return PrincipalRoles(
        principal_id=principal_id,
        roles=tuple(role_from_row(row) for row in role_rows),
        grant_owner_ids=frozenset(row.owner_id for row in grant_rows),
    )


async def roles_for(session: AsyncSession, principal_id: str) -> tuple[Role, ...] | Unassigned:
    snapshot = await load_principal_roles(session, principal_id)
    if snapshot is None:
        return Unassigned()
    return snapshot.resolved()


async def is_super_admin(session: AsyncSession, principal_id: str | None) -> bool:
    if not principal_id:
        return False
    return await roles_repo.has_super_admin(session, principal_id)


async def is_tenant_admin(session: AsyncSession, principal_id: str, owner_id: str) -> bool:
    snapshot = await load_principal_roles(session, principal_id)
    return bool(snapshot and snapshot.is_tenant_admin(owner_id))


async def is_any_tenant_admin(session: AsyncSession, principal_id: str) -> bool:
    snapshot = await load_principal_roles(session, principal_id)
    return bool(snapshot and snapshot.admin_owner_ids())


async def admin_tenants(session: AsyncSession, principal_id: str) -> list[str]:
    snapshot = await load_principal_roles(session, principal_id)
    if snapshot is None:
        return []
    return snapshot.admin_owner_ids()


async def accessible_tenants(session: AsyncSession, principal_id: str) -> dict[str, str]:
    # Map owner id to the strongest tenant-scoped role; direct grants count as registered.
    snapshot = await load_principal_roles(session, principal_id)
    if snapshot is None:
        return {}
    strongest: dict[str, Role] = {owner_id: Registered(owner_id) for owner_id in snapshot.grant_owner_ids}
    for role in snapshot.roles:
        if isinstance(role, SuperAdmin):
            continue
        current = strongest.get(role.tenant_id)
        if current is None or role_rank(role) > role_rank(current):
            strongest[role.tenant_id] = role
    return {owner_id: role.name for owner_id, role in sorted(strongest.items())}


async def tenant_members(session: AsyncSession, owner_id: str) -> list[str]:
    return await roles_repo.list_owner_member_ids(session, owner_id)


def require_authenticated(principal: PrincipalRoles | None) -> PrincipalRoles:
    if principal is None:
        raise PermissionDeniedError("Authentication required")
    return principal


def require_super_admin(principal: PrincipalRoles | None) -> PrincipalRoles:
    principal = require_authenticated(principal)
    if not principal.is_super_admin:
        logger.info("permission_denied principal_id=%s required=super_admin", principal.principal_id)
        raise PermissionDeniedError("Super admin role required")
    return principal


def require_owner_admin(principal: PrincipalRoles | None, owner_id: str) -> PrincipalRoles:
    # Owner administration is open to that owner's tenant admins and super admins.
    principal = require_authenticated(principal)
    if principal.is_super_admin or principal.is_tenant_admin(owner_id):
        return principal
    logger.info(
        "permission_denied principal_id=%s required=tenant_admin owner_id=%s",
        principal.principal_id,
        owner_id,
    )
    raise PermissionDeniedError("Tenant admin role required for this owner")


def uploader_id(document: Document) -> str | None:
    # Private uploads carry the uploading principal in metadata.
    metadata = document.metadata_json or {}
    value = metadata.get("user_id")
    return str(value) if value else None


def can_manage_document(principal: PrincipalRoles | None, document: Document) -> bool:
    if principal is None:
        return False
    if principal.is_super_admin:
        return True
    if document.owner_id is None:
        return uploader_id(document) == principal.principal_id
    return principal.is_tenant_admin(document.owner_id)


def require_document_admin(principal: PrincipalRoles | None, document: Document) -> PrincipalRoles:
    principal = require_authenticated(principal)
    if not can_manage_document(principal, document):
        logger.info(
            "permission_denied principal_id=%s required=document_admin document_id=%s",
            principal.principal_id,
            document.id,
        )
        raise PermissionDeniedError("Not allowed to modify this document")
    return principal
