"""Pure hybrid ranking over pre-computed chunk signals.

Both the Postgres path (pgvector + tsvector) and the portable Python path produce
``ChunkCandidate`` rows; ``rank_candidates`` turns them into the final ordered
result so the two paths cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

SCORING_WEIGHTED = "weighted"
SCORING_BONUS = "bonus"
SCORING_MODES = (SCORING_WEIGHTED, SCORING_BONUS)


@dataclass(frozen=True)
class ChunkCandidate:
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float
    lexical_match: bool
    text_rank: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedChunk:
    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    similarity: float
    combined_score: float
    lexical_match: bool
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoringWeights:
    vector_weight: float = 0.7
    text_weight: float = 0.3
    lexical_bonus: float = 0.1


def combined_score(
    candidate: ChunkCandidate, *, mode: str, weights: ScoringWeights = ScoringWeights()
) -> float:
    if mode == SCORING_WEIGHTED:
        return weights.vector_weight * candidate.similarity + weights.text_weight * candidate.text_rank
    if mode == SCORING_BONUS:
        bonus = weights.lexical_bonus if candidate.lexical_match else 0.0
        return candidate.similarity + bonus
    raise ValueError(f"unknown scoring mode: {mode}")


def is_eligible(candidate: ChunkCandidate, match_threshold: float) -> bool:
    # Keyword hits surface even when their embedding similarity is low.
    return candidate.similarity > match_threshold or candidate.lexical_match


def _sort_key(item: RankedChunk) -> tuple[float, int, str, str]:
    return (-item.combined_score, item.chunk_index, item.document_id, item.chunk_id)


def rank_candidates(
    candidates: Iterable[ChunkCandidate],
    *,
    match_threshold: float,
    match_count_per_doc: int,
    mode: str = SCORING_WEIGHTED,
    weights: ScoringWeights = ScoringWeights(),
) -> list[RankedChunk]:
    """Filter, score, cap per document and order candidates.

    Ordering is total (score desc, chunk_index asc, then ids) so identical inputs
    always produce identical output regardless of input order.
    """
    if match_count_per_doc < 1:
        return []
    partitions: dict[str, list[RankedChunk]] = {}
    for candidate in candidates:
        if not is_eligible(candidate, match_threshold):
            continue
        ranked = RankedChunk(
            chunk_id=candidate.chunk_id,
            document_id=candidate.document_id,
            chunk_index=candidate.chunk_index,
            content=candidate.content,
            similarity=candidate.similarity,
            combined_score=combined_score(candidate, mode=mode, weights=weights),
            lexical_match=candidate.lexical_match,
            metadata=candidate.metadata,
        )
        partitions.setdefault(candidate.document_id, []).append(ranked)

    results: list[RankedChunk] = []
    for items in partitions.values():
        items.sort(key=_sort_key)
        results.extend(items[:match_count_per_doc])
    results.sort(key=_sort_key)
    return results
