from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import get_settings
from docgate.core.errors import ConcurrencyConflictError, NotFoundError, QuotaExceededError
from docgate.domain.models import (
    PLAN_ENTERPRISE,
    PLAN_FREE,
    PLAN_PRO,
    PLAN_TIERS,
    PLAN_UNLIMITED,
    Owner,
)
from docgate.persistence.dialect import is_postgres
from docgate.persistence.repos import owners as owners_repo


logger = logging.getLogger(__name__)

# None means no ceiling.
_DOCUMENT_LIMITS: dict[str, int | None] = {
    PLAN_FREE: 1,
    PLAN_PRO: 5,
    PLAN_ENTERPRISE: 10,
    PLAN_UNLIMITED: None,
}
_VOICE_TRAINING_TIERS = frozenset({PLAN_ENTERPRISE, PLAN_UNLIMITED})
# Postgres SQLSTATE for lock_timeout expiry.
_LOCK_NOT_AVAILABLE = "55P03"


@dataclass(frozen=True)
class QuotaStatus:
    owner_id: str
    plan_tier: str
    limit: int | None
    current_count: int
    can_add_document: bool
    can_use_voice_training: bool


def resolve_plan_tier(plan_tier: str | None) -> str:
    # Unset or unknown tiers fall back to the configured default.
    normalized = (plan_tier or "").strip().lower()
    if normalized in PLAN_TIERS:
        return normalized
    fallback = get_settings().default_plan_tier
    return fallback if fallback in PLAN_TIERS else PLAN_PRO


def document_limit(plan_tier: str | None) -> int | None:
    return _DOCUMENT_LIMITS[resolve_plan_tier(plan_tier)]


def allows_another_document(plan_tier: str | None, current_count: int) -> bool:
    limit = document_limit(plan_tier)
    return limit is None or current_count < limit


def voice_training_enabled(plan_tier: str | None) -> bool:
    return resolve_plan_tier(plan_tier) in _VOICE_TRAINING_TIERS


async def _require_owner(session: AsyncSession, owner_id: str) -> Owner:
    owner = await owners_repo.get_owner(session, owner_id)
    if owner is None:
        raise NotFoundError("Owner not found", details={"owner_id": owner_id})
    return owner


async def can_add_document(session: AsyncSession, owner_id: str) -> bool:
    # Advisory check: the count is read without a lock, so concurrent callers may
    # both see room. Document creation re-checks under the owner row lock.
    owner = await owners_repo.get_owner(session, owner_id)
    if owner is None:
        return False
    current = await owners_repo.count_active_documents(session, owner_id)
    return allows_another_document(owner.plan_tier, current)


async def can_use_voice_training(session: AsyncSession, owner_id: str) -> bool:
    owner = await owners_repo.get_owner(session, owner_id)
    if owner is None:
        return False
    return voice_training_enabled(owner.plan_tier)


async def quota_status(session: AsyncSession, owner_id: str) -> QuotaStatus:
    owner = await _require_owner(session, owner_id)
    tier = resolve_plan_tier(owner.plan_tier)
    current = await owners_repo.count_active_documents(session, owner_id)
    return QuotaStatus(
        owner_id=owner_id,
        plan_tier=tier,
        limit=document_limit(tier),
        current_count=current,
        can_add_document=allows_another_document(tier, current),
        can_use_voice_training=voice_training_enabled(tier),
    )


async def _set_lock_timeout(session: AsyncSession) -> None:
    timeout_ms = int(get_settings().quota_lock_timeout_ms)
    if timeout_ms > 0 and is_postgres(session):
        # SET LOCAL only lasts until the enclosing transaction ends.
        await session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == _LOCK_NOT_AVAILABLE or "lock timeout" in str(orig or exc).lower()


async def enforce_document_quota(session: AsyncSession, owner_id: str) -> Owner:
    """Lock the owner row and re-count its active documents.

    Must be called inside the transaction that inserts or reactivates the
    document, so concurrent creators for the same owner serialize on the lock and
    the second one sees the first one's row.
    """
    await _set_lock_timeout(session)
    try:
        owner = await owners_repo.get_owner_for_update(session, owner_id)
    except DBAPIError as exc:
        if _is_lock_timeout(exc):
            logger.warning("quota_lock_timeout owner_id=%s", owner_id)
            raise ConcurrencyConflictError(
                "Owner is busy with another document change; retry",
                details={"owner_id": owner_id},
            ) from exc
        raise
    if owner is None:
        raise NotFoundError("Owner not found", details={"owner_id": owner_id})

    tier = resolve_plan_tier(owner.plan_tier)
    limit = document_limit(tier)
    if limit is None:
        return owner
    current = await owners_repo.count_active_documents(session, owner_id)
    if current >= limit:
        logger.info(
            "quota_exceeded owner_id=%s plan_tier=%s limit=%s current_count=%s",
            owner_id,
            tier,
            limit,
            current,
        )
        raise QuotaExceededError(plan_tier=tier, limit=limit, current_count=current)
    return owner
