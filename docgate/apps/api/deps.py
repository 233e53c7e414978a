from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import get_settings
from docgate.persistence.db import get_session


logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


def get_principal_id(request: Request) -> str | None:
    """Return the caller's principal id, or None for anonymous requests.

    Token verification is done upstream and recorded on ``request.state``. The
    header fallback exists for local development only and is off by default.
    """
    principal_id = getattr(request.state, "principal_id", None)
    if principal_id:
        return str(principal_id)
    settings = get_settings()
    if settings.auth_dev_bypass:
        header_value = (request.headers.get(settings.auth_principal_header) or "").strip()
        return header_value or None
    return None


def require_principal_id(principal_id: str | None = Depends(get_principal_id)) -> str:
    if principal_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTH_UNAUTHORIZED", "message": "Authentication required"},
        )
    return principal_id
