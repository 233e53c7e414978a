from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.apps.api.deps import get_db, get_principal_id
from docgate.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docgate.apps.api.response import SuccessEnvelope, success_response
from docgate.providers.retrieval.base import HybridSearchProvider
from docgate.providers.retrieval.hybrid import HybridRetriever
from docgate.services import access as access_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/search", tags=["search"], responses=DEFAULT_ERROR_RESPONSES)


def get_retriever(db: AsyncSession = Depends(get_db)) -> HybridSearchProvider:
    # Shares the request session so access checks and ranking see the same snapshot.
    return HybridRetriever(db)


class SearchRequest(BaseModel):
    # Embeddings come from the caller; this service never generates them.
    query_embedding: list[float] = Field(min_length=1)
    query_text: str = ""
    documents: list[str] = Field(min_length=1, max_length=100, description="Document ids or slugs")
    passcodes: dict[str, str] | None = None
    match_threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    match_count: int | None = Field(default=None, ge=1)
    scoring_mode: str | None = None

    model_config = {"extra": "forbid"}


class SearchHit(BaseModel):
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float
    combined_score: float
    lexical_match: bool
    metadata: dict[str, Any]


class SearchResponse(BaseModel):
    results: list[SearchHit]
    # Identifiers dropped because the caller may not read them (or they do not exist).
    skipped: list[str]


@router.post("", response_model=SuccessEnvelope[SearchResponse])
async def hybrid_search(
    payload: SearchRequest,
    request: Request,
    principal_id: str | None = Depends(get_principal_id),
    db: AsyncSession = Depends(get_db),
    retriever: HybridSearchProvider = Depends(get_retriever),
) -> dict:
    readable, skipped = await access_service.readable_document_ids(
        db, principal_id, payload.documents, passcodes=payload.passcodes
    )
    results = []
    if readable:
        results = await retriever.search(
            query_embedding=payload.query_embedding,
            query_text=payload.query_text,
            document_ids=readable,
            match_threshold=payload.match_threshold,
            match_count=payload.match_count,
            scoring_mode=payload.scoring_mode,
        )
    data = SearchResponse(
        results=[
            SearchHit(
                chunk_id=item.chunk_id,
                document_id=item.document_id,
                chunk_index=item.chunk_index,
                content=item.content,
                similarity=item.similarity,
                combined_score=item.combined_score,
                lexical_match=item.lexical_match,
                metadata=item.metadata,
            )
            for item in results
        ],
        skipped=skipped,
    )
    return success_response(request=request, data=data)
