from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


def is_postgres(session: AsyncSession) -> bool:
    # Postgres-only SQL (row locks, pgvector operators, tsvector) branches on this.
    return session.get_bind().dialect.name == "postgresql"
