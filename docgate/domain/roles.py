"""Role hierarchy as a closed set of value types.

A principal's role rows are decoded into ``Registered``, ``TenantAdmin`` and
``SuperAdmin`` values. ``SuperAdmin`` carries no tenant, so a globally scoped
tenant role cannot be represented. A principal with no rows at all resolves to
``Unassigned`` rather than to a sentinel tenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from docgate.domain.models import (
    ROLE_REGISTERED,
    ROLE_SUPER_ADMIN,
    ROLE_TENANT_ADMIN,
    RoleAssignment,
)


@dataclass(frozen=True)
class Registered:
    tenant_id: str

    @property
    def name(self) -> str:
        return ROLE_REGISTERED


@dataclass(frozen=True)
class TenantAdmin:
    tenant_id: str

    @property
    def name(self) -> str:
        return ROLE_TENANT_ADMIN


@dataclass(frozen=True)
class SuperAdmin:
    @property
    def name(self) -> str:
        return ROLE_SUPER_ADMIN

    @property
    def tenant_id(self) -> None:
        return None


@dataclass(frozen=True)
class Unassigned:
    @property
    def name(self) -> str:
        return "unassigned"


Role = Union[Registered, TenantAdmin, SuperAdmin]

# Rank used when collapsing several roles for the same tenant.
_ROLE_RANK = {ROLE_REGISTERED: 1, ROLE_TENANT_ADMIN: 2, ROLE_SUPER_ADMIN: 3}


def role_from_parts(role: str, tenant_id: str | None) -> Role:
    # Decode loosely typed inputs, rejecting scope/role combinations the hierarchy forbids.
    normalized = (role or "").strip().lower()
    if normalized == ROLE_SUPER_ADMIN:
        if tenant_id is not None:
            raise ValueError("super_admin cannot be scoped to a tenant")
        return SuperAdmin()
    if normalized not in (ROLE_REGISTERED, ROLE_TENANT_ADMIN):
        raise ValueError(f"unknown role: {role}")
    if not tenant_id:
        raise ValueError(f"{normalized} requires a tenant scope")
    if normalized == ROLE_TENANT_ADMIN:
        return TenantAdmin(tenant_id)
    return Registered(tenant_id)


def role_from_row(row: RoleAssignment) -> Role:
    return role_from_parts(row.role, row.owner_id)


def role_rank(role: Role) -> int:
    return _ROLE_RANK[role.name]


def is_admin_role(role: Role) -> bool:
    return isinstance(role, (TenantAdmin, SuperAdmin))
