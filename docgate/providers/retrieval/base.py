from __future__ import annotations

from typing import Protocol, Sequence

from docgate.providers.retrieval.ranking import RankedChunk


class HybridSearchProvider(Protocol):
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
        ...
