from __future__ import annotations

from datetime import datetime, timedelta, timezone
import hashlib
import logging
import re
import secrets
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import get_settings
from docgate.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from docgate.domain.models import ROLE_REGISTERED, Invitation
from docgate.domain.roles import SuperAdmin, TenantAdmin
from docgate.persistence.repos import invitations as invitations_repo
from docgate.persistence.repos import roles as roles_repo
from docgate.persistence.transactions import unit_of_work
from docgate.services.grants import (
    GrantResult,
    apply_role_grant,
    log_grant,
    parse_role,
    require_owner_exists,
)
from docgate.services.roles import load_principal_roles, require_owner_admin, require_super_admin


logger = logging.getLogger(__name__)

TOKEN_PREFIX = "dgi_"
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _utc_now() -> datetime:
    # Keep invitation timestamps in UTC for consistent expiry checks.
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Some drivers hand back naive timestamps; they are stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_invitation_token(raw_token: str) -> str:
    # Use SHA-256 for deterministic, non-reversible token storage.
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_invitation_token() -> tuple[str, str, str, str]:
    # Embed the invitation id so operators can trace a link without its secret.
    invitation_id = uuid4().hex
    raw_token = f"{TOKEN_PREFIX}{invitation_id}_{secrets.token_urlsafe(32)}"
    return invitation_id, raw_token, raw_token[:12], hash_invitation_token(raw_token)


def _normalize_email(email: str | None) -> str | None:
    normalized = (email or "").strip().lower()
    if not normalized:
        return None
    if not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format", details={"email": email})
    return normalized


def _check_redeemable(invitation: Invitation | None, now: datetime) -> Invitation:
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.used_at is not None:
        raise ValidationError("Invitation already used", details={"invitation_id": invitation.id})
    if _as_utc(invitation.expires_at) <= now:
        raise ValidationError("Invitation expired", details={"invitation_id": invitation.id})
    return invitation


async def create_invitation(
    session: AsyncSession,
    *,
    actor_id: str,
    owner_id: str,
    role: str = ROLE_REGISTERED,
    email: str | None = None,
    ttl_hours: int | None = None,
) -> tuple[str, Invitation]:
    """Issue a single-use invitation into one owner.

    Returns the raw token alongside the stored row; only its hash is persisted,
    so the token cannot be recovered later. Tenant admins may invite registered
    members of their own owner; tenant_admin invitations need a super admin.
    """
    parsed = parse_role(role, owner_id)
    if isinstance(parsed, SuperAdmin):
        raise ValidationError("Invitations cannot grant super_admin", details={"role": role})
    actor = await load_principal_roles(session, actor_id)
    if isinstance(parsed, TenantAdmin):
        require_super_admin(actor)
    else:
        require_owner_admin(actor, owner_id)
    await require_owner_exists(session, owner_id)
    normalized_email = _normalize_email(email)
    ttl = get_settings().invitation_ttl_hours if ttl_hours is None else ttl_hours
    if ttl <= 0:
        raise ValidationError("Invitation lifetime must be positive", details={"ttl_hours": ttl})

    invitation_id, raw_token, token_prefix, token_hash = generate_invitation_token()
    now = _utc_now()
    invitation = Invitation(
        id=invitation_id,
        token_hash=token_hash,
        token_prefix=token_prefix,
        email=normalized_email,
        owner_id=owner_id,
        role=parsed.name,
        invited_by=actor_id,
        expires_at=now + timedelta(hours=ttl),
        used_at=None,
        used_by=None,
        created_at=now,
    )
    async with unit_of_work(session):
        await invitations_repo.insert_invitation(session, invitation)
    logger.info(
        "invitation_created invitation_id=%s owner_id=%s role=%s actor_id=%s",
        invitation_id,
        owner_id,
        parsed.name,
        actor_id,
    )
    return raw_token, invitation


async def validate_invitation(session: AsyncSession, raw_token: str) -> Invitation:
    # Read-only preview for signup pages; redemption re-checks under a row lock.
    invitation = await invitations_repo.get_invitation_by_token_hash(
        session, hash_invitation_token(raw_token)
    )
    return _check_redeemable(invitation, _utc_now())


async def redeem_invitation(
    session: AsyncSession,
    *,
    raw_token: str,
    principal_id: str | None,
) -> GrantResult:
    """Turn an invitation into a role assignment for the redeeming principal.

    The grant, its cleanup of redundant rows and the single-use mark commit
    together; any failure leaves the invitation redeemable.
    """
    if not principal_id:
        raise PermissionDeniedError("Authentication required")
    now = _utc_now()
    async with unit_of_work(session):
        invitation = _check_redeemable(
            await invitations_repo.get_invitation_for_update(
                session, hash_invitation_token(raw_token)
            ),
            now,
        )
        user = await roles_repo.get_user(session, principal_id)
        if user is None:
            raise ValidationError("Unknown principal", details={"principal_id": principal_id})
        if invitation.email and (user.email or "").strip().lower() != invitation.email:
            logger.info(
                "invitation_email_mismatch invitation_id=%s principal_id=%s",
                invitation.id,
                principal_id,
            )
            raise PermissionDeniedError("Invitation was issued to a different email")
        result = await apply_role_grant(
            session,
            principal_id=principal_id,
            role=parse_role(invitation.role, invitation.owner_id),
            granted_by=invitation.invited_by,
        )
        invitation.used_at = now
        invitation.used_by = principal_id
        await session.flush()
    log_grant(result, invitation.invited_by)
    logger.info(
        "invitation_redeemed invitation_id=%s principal_id=%s owner_id=%s role=%s",
        invitation.id,
        principal_id,
        invitation.owner_id,
        invitation.role,
    )
    return result


async def list_pending_invitations(
    session: AsyncSession, *, actor_id: str, owner_id: str
) -> list[Invitation]:
    require_owner_admin(await load_principal_roles(session, actor_id), owner_id)
    return await invitations_repo.list_pending(session, owner_id=owner_id, now=_utc_now())


async def revoke_invitation(session: AsyncSession, *, actor_id: str, invitation_id: str) -> None:
    invitation = await invitations_repo.get_invitation(session, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    require_owner_admin(await load_principal_roles(session, actor_id), invitation.owner_id)
    if invitation.used_at is not None:
        raise ValidationError(
            "Cannot revoke an invitation that has already been used",
            details={"invitation_id": invitation_id},
        )
    async with unit_of_work(session):
        await invitations_repo.delete_invitation(session, invitation_id)
    logger.info(
        "invitation_revoked invitation_id=%s owner_id=%s actor_id=%s",
        invitation_id,
        invitation.owner_id,
        actor_id,
    )
