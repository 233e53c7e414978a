from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    # Run a group of writes as one all-or-nothing unit.
    in_transaction = session.in_transaction()
    # Use a savepoint when prior reads have already opened a transaction.
    tx_context = session.begin_nested() if in_transaction else session.begin()
    async with tx_context:
        yield session
    if in_transaction:
        # Commit the outer transaction we piggybacked on.
        await session.commit()
