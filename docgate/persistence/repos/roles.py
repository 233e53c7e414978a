from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import (
    ROLE_REGISTERED,
    ROLE_SUPER_ADMIN,
    RoleAssignment,
    TenantAccessGrant,
    User,
)


async def get_user(session: AsyncSession, principal_id: str) -> User | None:
    result = await session.execute(select(User).where(User.id == principal_id))
    return result.scalar_one_or_none()


def lock_user_stmt(principal_id: str) -> Select[tuple[User]]:
    # Row lock serializes role and grant writes per principal (not rendered on SQLite).
    return select(User).where(User.id == principal_id).with_for_update()


async def get_user_for_update(session: AsyncSession, principal_id: str) -> User | None:
    result = await session.execute(lock_user_stmt(principal_id))
    return result.scalar_one_or_none()


async def list_role_rows(session: AsyncSession, principal_id: str) -> list[RoleAssignment]:
    result = await session.execute(
        select(RoleAssignment)
        .where(RoleAssignment.principal_id == principal_id)
        .order_by(RoleAssignment.owner_id, RoleAssignment.role)
    )
    return list(result.scalars().all())


async def list_grant_rows(session: AsyncSession, principal_id: str) -> list[TenantAccessGrant]:
    result = await session.execute(
        select(TenantAccessGrant)
        .where(TenantAccessGrant.principal_id == principal_id)
        .order_by(TenantAccessGrant.owner_id)
    )
    return list(result.scalars().all())


async def find_role_row(
    session: AsyncSession, *, principal_id: str, owner_id: str | None, role: str
) -> RoleAssignment | None:
    stmt = select(RoleAssignment).where(
        RoleAssignment.principal_id == principal_id,
        RoleAssignment.role == role,
    )
    if owner_id is None:
        stmt = stmt.where(RoleAssignment.owner_id.is_(None))
    else:
        stmt = stmt.where(RoleAssignment.owner_id == owner_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_grant_row(
    session: AsyncSession, *, principal_id: str, owner_id: str
) -> TenantAccessGrant | None:
    result = await session.execute(
        select(TenantAccessGrant).where(
            TenantAccessGrant.principal_id == principal_id,
            TenantAccessGrant.owner_id == owner_id,
        )
    )
    return result.scalar_one_or_none()


async def insert_role_row(
    session: AsyncSession,
    *,
    principal_id: str,
    owner_id: str | None,
    role: str,
    granted_by: str | None,
) -> RoleAssignment:
    row = RoleAssignment(
        id=uuid4().hex,
        principal_id=principal_id,
        owner_id=owner_id,
        role=role,
        granted_by=granted_by,
    )
    session.add(row)
    await session.flush()
    return row


async def insert_grant_row(
    session: AsyncSession, *, principal_id: str, owner_id: str, granted_by: str | None
) -> TenantAccessGrant:
    row = TenantAccessGrant(
        id=uuid4().hex,
        principal_id=principal_id,
        owner_id=owner_id,
        granted_by=granted_by,
    )
    session.add(row)
    await session.flush()
    return row


async def delete_grants(
    session: AsyncSession, *, principal_id: str, owner_id: str | None = None
) -> int:
    # owner_id=None removes every direct grant the principal holds.
    stmt = delete(TenantAccessGrant).where(TenantAccessGrant.principal_id == principal_id)
    if owner_id is not None:
        stmt = stmt.where(TenantAccessGrant.owner_id == owner_id)
    result = await session.execute(stmt)
    return int(result.rowcount or 0)


async def delete_registered_roles(
    session: AsyncSession, *, principal_id: str, owner_id: str | None = None
) -> int:
    # owner_id=None removes registered rows across every tenant.
    stmt = delete(RoleAssignment).where(
        RoleAssignment.principal_id == principal_id,
        RoleAssignment.role == ROLE_REGISTERED,
    )
    if owner_id is not None:
        stmt = stmt.where(RoleAssignment.owner_id == owner_id)
    result = await session.execute(stmt)
    return int(result.rowcount or 0)


async def delete_role_row(
    session: AsyncSession, *, principal_id: str, owner_id: str | None, role: str
) -> int:
    stmt = delete(RoleAssignment).where(
        RoleAssignment.principal_id == principal_id,
        RoleAssignment.role == role,
    )
    if owner_id is None:
        stmt = stmt.where(RoleAssignment.owner_id.is_(None))
    else:
        stmt = stmt.where(RoleAssignment.owner_id == owner_id)
    result = await session.execute(stmt)
    return int(result.rowcount or 0)


async def has_super_admin(session: AsyncSession, principal_id: str) -> bool:
    result = await session.execute(
        select(RoleAssignment.id)
        .where(
            RoleAssignment.principal_id == principal_id,
            RoleAssignment.role == ROLE_SUPER_ADMIN,
            RoleAssignment.owner_id.is_(None),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_owner_member_ids(session: AsyncSession, owner_id: str) -> list[str]:
    # Union of principals holding any role or a direct grant in the owner.
    role_ids = await session.execute(
        select(RoleAssignment.principal_id).where(RoleAssignment.owner_id == owner_id)
    )
    grant_ids = await session.execute(
        select(TenantAccessGrant.principal_id).where(TenantAccessGrant.owner_id == owner_id)
    )
    members = set(role_ids.scalars().all()) | set(grant_ids.scalars().all())
    return sorted(members)
