from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from sqlalchemy import Select, func, literal_column, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docgate.core.config import EMBED_DIM, Settings, get_settings
from docgate.core.errors import RetrievalError, ValidationError
from docgate.domain.models import DocumentChunk
from docgate.persistence.dialect import is_postgres
from docgate.persistence.repos import chunks as chunks_repo
from docgate.persistence.repos import documents as documents_repo
from docgate.providers.retrieval.lexical import (
    cosine_similarity,
    lexemes,
    lexical_match,
    query_terms,
    text_rank,
)
from docgate.providers.retrieval.ranking import (
    SCORING_MODES,
    ChunkCandidate,
    RankedChunk,
    ScoringWeights,
    rank_candidates,
)


logger = logging.getLogger(__name__)

_TS_CONFIG_RE = re.compile(r"^[a-z_]+$")


def build_pg_candidate_query(
    *,
    query_embedding: Sequence[float],
    query_text: str,
    document_ids: Sequence[str],
    match_threshold: float,
    text_search_config: str,
) -> Select[Any]:
    """Select per-chunk signals for the candidate documents in one statement.

    The tsvector expression matches the GIN expression index created by the
    hybrid search migration, so the regconfig is rendered inline.
    """
    if not _TS_CONFIG_RE.match(text_search_config):
        raise RetrievalError("invalid text search configuration")
    config = literal_column(f"'{text_search_config}'::regconfig")
    tsvector = func.to_tsvector(config, DocumentChunk.content)
    tsquery = func.plainto_tsquery(config, query_text)
    # pgvector cosine distance is 1 - cosine similarity.
    similarity = 1 - DocumentChunk.embedding.cosine_distance(list(query_embedding))
    matches = tsvector.op("@@")(tsquery)
    return (
        select(
            DocumentChunk.id,
            DocumentChunk.document_id,
            DocumentChunk.chunk_index,
            DocumentChunk.content,
            DocumentChunk.metadata_json,
            similarity.label("similarity"),
            matches.label("lexical_match"),
            func.ts_rank(tsvector, tsquery).label("text_rank"),
        )
        .where(DocumentChunk.document_id.in_(list(document_ids)))
        .where(or_(similarity > match_threshold, matches))
    )


class HybridRetriever:
    def __init__(self, session: AsyncSession, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    def _weights(self) -> ScoringWeights:
        return ScoringWeights(
            vector_weight=self._settings.hybrid_vector_weight,
            text_weight=self._settings.hybrid_text_weight,
            lexical_bonus=self._settings.hybrid_lexical_bonus,
        )

    async def search(
        self,
        *,
        query_embedding: Sequence[float],
        query_text: str,
        document_ids: Sequence[str] | None = None,
        slugs: Sequence[str] | None = None,
        match_threshold: float | None = None,
        match_count: int | None = None,
        scoring_mode: str | None = None,
    ) -> list[RankedChunk]:
        if len(query_embedding) != EMBED_DIM:
            # Fail fast when the query embedding does not match the stored vectors.
            raise RetrievalError(
                "query embedding dimension mismatch",
                details={"expected": EMBED_DIM, "actual": len(query_embedding)},
            )
        mode = scoring_mode or self._settings.hybrid_scoring_mode
        if mode not in SCORING_MODES:
            raise ValidationError(
                "Unknown scoring mode", details={"scoring_mode": mode, "allowed": list(SCORING_MODES)}
            )
        threshold = (
            self._settings.hybrid_match_threshold if match_threshold is None else float(match_threshold)
        )
        # Clamp caller-supplied counts to keep result sets bounded.
        per_doc = int(match_count or self._settings.hybrid_match_count)
        per_doc = max(1, min(per_doc, self._settings.hybrid_max_match_count))

        try:
            documents = await documents_repo.get_documents(
                self._session,
                document_ids=list(document_ids or []),
                slugs=list(slugs or []),
            )
            active_ids = sorted(document.id for document in documents if document.active)
            if not active_ids:
                return []
            if is_postgres(self._session):
                candidates = await self._pg_candidates(query_embedding, query_text, active_ids, threshold)
            else:
                candidates = await self._python_candidates(query_embedding, query_text, active_ids)
        except SQLAlchemyError as exc:
            # Convert DB errors into a controlled retrieval error.
            raise RetrievalError("hybrid search query failed") from exc

        results = rank_candidates(
            candidates,
            match_threshold=threshold,
            match_count_per_doc=per_doc,
            mode=mode,
            weights=self._weights(),
        )
        logger.debug(
            "hybrid_search documents=%s candidates=%s results=%s mode=%s",
            len(active_ids),
            len(candidates),
            len(results),
            mode,
        )
        return results

    async def _pg_candidates(
        self,
        query_embedding: Sequence[float],
        query_text: str,
        document_ids: list[str],
        threshold: float,
    ) -> list[ChunkCandidate]:
        stmt = build_pg_candidate_query(
            query_embedding=query_embedding,
            query_text=query_text,
            document_ids=document_ids,
            match_threshold=threshold,
            text_search_config=self._settings.hybrid_text_search_config,
        )
        result = await self._session.execute(stmt)
        return [
            ChunkCandidate(
                chunk_id=row.id,
                document_id=row.document_id,
                chunk_index=int(row.chunk_index),
                content=row.content,
                similarity=float(row.similarity),
                lexical_match=bool(row.lexical_match),
                text_rank=float(row.text_rank or 0.0),
                metadata=row.metadata_json or {},
            )
            for row in result.all()
        ]

    async def _python_candidates(
        self,
        query_embedding: Sequence[float],
        query_text: str,
        document_ids: list[str],
    ) -> list[ChunkCandidate]:
        # Portable path for databases without pgvector or tsvector support.
        terms = query_terms(query_text)
        query_vector = [float(value) for value in query_embedding]
        candidates: list[ChunkCandidate] = []
        for chunk in await chunks_repo.list_chunks(self._session, document_ids):
            content_lexemes = lexemes(chunk.content)
            candidates.append(
                ChunkCandidate(
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    chunk_index=chunk.chunk_index,
                    content=chunk.content,
                    similarity=cosine_similarity(query_vector, [float(value) for value in chunk.embedding]),
                    lexical_match=lexical_match(terms, content_lexemes),
                    text_rank=text_rank(terms, content_lexemes),
                    metadata=chunk.metadata_json or {},
                )
            )
        return candidates
