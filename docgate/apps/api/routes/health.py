from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.persistence.db import database_ready

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    app: str
    database: str


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    # Stays 200 when the database is down so load balancers can tell degraded from dead.
    ready = await database_ready(db)
    payload = HealthResponse(
        status="ok" if ready else "degraded",
        app=request.app.state.app_name,
        database="ok" if ready else "unavailable",
    )
    return success_response(request=request, data=payload)
