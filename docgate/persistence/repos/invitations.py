from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import Invitation


async def insert_invitation(session: AsyncSession, invitation: Invitation) -> Invitation:
    session.add(invitation)
    await session.flush()
    return invitation


async def get_invitation(session: AsyncSession, invitation_id: str) -> Invitation | None:
    result = await session.execute(select(Invitation).where(Invitation.id == invitation_id))
    return result.scalar_one_or_none()


async def get_invitation_by_token_hash(session: AsyncSession, token_hash: str) -> Invitation | None:
    result = await session.execute(select(Invitation).where(Invitation.token_hash == token_hash))
    return result.scalar_one_or_none()


def lock_invitation_stmt(token_hash: str) -> Select[tuple[Invitation]]:
    # Row lock makes redemption single-use under concurrent requests (not rendered on SQLite).
    return (
        select(Invitation)
        .where(Invitation.token_hash == token_hash)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


async def get_invitation_for_update(session: AsyncSession, token_hash: str) -> Invitation | None:
    result = await session.execute(lock_invitation_stmt(token_hash))
    return result.scalar_one_or_none()


async def list_pending(session: AsyncSession, *, owner_id: str, now: datetime) -> list[Invitation]:
    result = await session.execute(
        select(Invitation)
        .where(
            Invitation.owner_id == owner_id,
            Invitation.used_at.is_(None),
            Invitation.expires_at > now,
        )
        .order_by(Invitation.created_at.desc(), Invitation.id)
    )
    return list(result.scalars().all())


async def delete_invitation(session: AsyncSession, invitation_id: str) -> int:
    result = await session.execute(delete(Invitation).where(Invitation.id == invitation_id))
    return int(result.rowcount or 0)
