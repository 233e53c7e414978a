from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.errors import ValidationError
from docgate.domain.roles import Registered, Role, SuperAdmin, TenantAdmin, role_from_parts
from docgate.persistence.repos import owners as owners_repo
from docgate.persistence.repos import roles as roles_repo
from docgate.persistence.transactions import unit_of_work
from docgate.services.roles import (
    PrincipalRoles,
    load_principal_roles,
    require_owner_admin,
    require_super_admin,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrantResult:
    principal_id: str
    role: str
    owner_id: str | None
    created: bool
    removed_grants: int = 0
    removed_registered: int = 0


def parse_role(role: str, owner_id: str | None) -> Role:
    # Reject scope/role combinations before touching the store.
    try:
        return role_from_parts(role, owner_id)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"role": role, "owner_id": owner_id}) from exc


async def _lock_principal(session: AsyncSession, principal_id: str) -> PrincipalRoles | None:
    # Lock the users row, then read the roles the lock now protects.
    if await roles_repo.get_user_for_update(session, principal_id) is None:
        raise ValidationError("Unknown principal", details={"principal_id": principal_id})
    return await load_principal_roles(session, principal_id)


async def require_owner_exists(session: AsyncSession, owner_id: str) -> None:
    if await owners_repo.get_owner(session, owner_id) is None:
        raise ValidationError("Unknown owner", details={"owner_id": owner_id})


def _is_covered_by_admin(target: PrincipalRoles | None, owner_id: str) -> bool:
    # Admin roles are supersets of registered access for their scope.
    if target is None:
        return False
    return target.is_super_admin or target.is_tenant_admin(owner_id)


async def apply_role_grant(
    session: AsyncSession,
    *,
    principal_id: str,
    role: Role,
    granted_by: str | None,
) -> GrantResult:
    """Write one role assignment and prune what it makes redundant.

    Must run inside a unit of work owned by the caller. Concurrent grants for
    the same principal queue on the users row lock, so the coverage check and
    the cleanup always see the other writer's committed rows.
    """
    target = await _lock_principal(session, principal_id)
    if isinstance(role, Registered) and _is_covered_by_admin(target, role.tenant_id):
        logger.info(
            "role_grant_redundant principal_id=%s role=%s owner_id=%s",
            principal_id,
            role.name,
            role.tenant_id,
        )
        return GrantResult(principal_id, role.name, role.tenant_id, created=False)

    created = False
    removed_grants = 0
    removed_registered = 0
    existing = await roles_repo.find_role_row(
        session, principal_id=principal_id, owner_id=role.tenant_id, role=role.name
    )
    if existing is None:
        await roles_repo.insert_role_row(
            session,
            principal_id=principal_id,
            owner_id=role.tenant_id,
            role=role.name,
            granted_by=granted_by,
        )
        created = True
    if isinstance(role, TenantAdmin):
        removed_grants = await roles_repo.delete_grants(
            session, principal_id=principal_id, owner_id=role.tenant_id
        )
        removed_registered = await roles_repo.delete_registered_roles(
            session, principal_id=principal_id, owner_id=role.tenant_id
        )
    elif isinstance(role, SuperAdmin):
        # Global access subsumes every tenant-scoped registered grant.
        removed_grants = await roles_repo.delete_grants(session, principal_id=principal_id)
        removed_registered = await roles_repo.delete_registered_roles(
            session, principal_id=principal_id
        )
    return GrantResult(
        principal_id,
        role.name,
        role.tenant_id,
        created=created,
        removed_grants=removed_grants,
        removed_registered=removed_registered,
    )


def log_grant(result: GrantResult, actor_id: str | None) -> None:
    if not result.created and not result.removed_grants and not result.removed_registered:
        return
    logger.info(
        "role_granted principal_id=%s role=%s owner_id=%s actor_id=%s created=%s "
        "removed_grants=%s removed_registered=%s",
        result.principal_id,
        result.role,
        result.owner_id,
        actor_id or "bootstrap",
        result.created,
        result.removed_grants,
        result.removed_registered,
    )


async def grant_role(
    session: AsyncSession,
    *,
    actor_id: str | None,
    principal_id: str,
    role: str,
    owner_id: str | None = None,
) -> GrantResult:
    """Grant a role assignment and prune the rows it makes redundant.

    The insert and the cleanup run in one unit of work. ``actor_id=None`` is the
    bootstrap path used by trusted seeding scripts and skips authorization.
    """
    parsed = parse_role(role, owner_id)
    if actor_id is not None:
        require_super_admin(await load_principal_roles(session, actor_id))
    if parsed.tenant_id is not None:
        await require_owner_exists(session, parsed.tenant_id)

    async with unit_of_work(session):
        result = await apply_role_grant(
            session, principal_id=principal_id, role=parsed, granted_by=actor_id
        )
    log_grant(result, actor_id)
    return result


async def revoke_role(
    session: AsyncSession,
    *,
    actor_id: str,
    principal_id: str,
    role: str,
    owner_id: str | None = None,
) -> bool:
    parsed = parse_role(role, owner_id)
    require_super_admin(await load_principal_roles(session, actor_id))
    async with unit_of_work(session):
        removed = await roles_repo.delete_role_row(
            session, principal_id=principal_id, owner_id=parsed.tenant_id, role=parsed.name
        )
    logger.info(
        "role_revoked principal_id=%s role=%s owner_id=%s actor_id=%s removed=%s",
        principal_id,
        parsed.name,
        parsed.tenant_id,
        actor_id,
        removed,
    )
    return removed > 0


async def grant_tenant_access(
    session: AsyncSession,
    *,
    actor_id: str,
    principal_id: str,
    owner_id: str,
) -> bool:
    # Returns True only when a new direct grant row was written.
    require_owner_admin(await load_principal_roles(session, actor_id), owner_id)
    await require_owner_exists(session, owner_id)

    async with unit_of_work(session):
        target = await _lock_principal(session, principal_id)
        if _is_covered_by_admin(target, owner_id):
            logger.info(
                "tenant_access_redundant principal_id=%s owner_id=%s", principal_id, owner_id
            )
            return False
        existing = await roles_repo.find_grant_row(
            session, principal_id=principal_id, owner_id=owner_id
        )
        if existing is not None:
            return False
        await roles_repo.insert_grant_row(
            session, principal_id=principal_id, owner_id=owner_id, granted_by=actor_id
        )
    logger.info(
        "tenant_access_granted principal_id=%s owner_id=%s actor_id=%s",
        principal_id,
        owner_id,
        actor_id,
    )
    return True


async def revoke_tenant_access(
    session: AsyncSession,
    *,
    actor_id: str,
    principal_id: str,
    owner_id: str,
) -> bool:
    require_owner_admin(await load_principal_roles(session, actor_id), owner_id)
    async with unit_of_work(session):
        removed = await roles_repo.delete_grants(
            session, principal_id=principal_id, owner_id=owner_id
        )
    logger.info(
        "tenant_access_revoked principal_id=%s owner_id=%s actor_id=%s removed=%s",
        principal_id,
        owner_id,
        actor_id,
        removed,
    )
    return removed > 0
