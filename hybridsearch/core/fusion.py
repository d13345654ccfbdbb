"""
Score fusion: merges a lexical batch and a vector batch into one ranking.
All functions are pure and take the whole batch as input.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from hybridsearch.vector.types import VectorResult

from .lexical import LexicalResult


@dataclass
class HybridResult:
    """A fused search hit. Component scores are in [0, 1]; combined_score is unbounded after boosting."""
    id: str
    title: str
    content: str
    record_type: str
    vector_score: float
    text_score: float
    combined_score: float
    highlights: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


def normalize_weights(vector_weight: float, text_weight: float) -> Tuple[float, float]:
    """Scale the weights so they sum to 1. A non-positive sum falls back to an even split."""
    total = vector_weight + text_weight
    if total <= 0:
        return 0.5, 0.5
    return vector_weight / total, text_weight / total


def normalize_scores(scores: Sequence[float]) -> List[float]:
    """Divide every score by the batch maximum, flooring negatives at 0. A batch whose max is <= 0 maps to zeros."""
    if not scores:
        return []
    top = max(scores)
    if top <= 0:
        return [0.0 for _ in scores]
    return [max(score, 0.0) / top for score in scores]


def fuse_results(
    lexical: Sequence[LexicalResult],
    vector: Sequence[VectorResult],
    vector_weight: float = 0.5,
    text_weight: float = 0.5,
    limit: Optional[int] = None,
) -> List[HybridResult]:
    """
    Merge lexical and vector hits by id and rank them by weighted score.

    Lexical hits are placed first, then vector-only hits, each in the order
    first seen; the final sort is stable so that order breaks score ties.

    Args:
        lexical: Full-text hits with raw scores
        vector: Vector hits with cosine scores
        vector_weight: Weight of the semantic score
        text_weight: Weight of the full-text score
        limit: Maximum number of results (None for all)

    Returns:
        Fused results sorted by combined_score descending
    """
    w_v, w_t = normalize_weights(vector_weight, text_weight)
    text_scores = normalize_scores([hit.score for hit in lexical])
    vector_scores = normalize_scores([hit.score for hit in vector])

    merged: Dict[str, HybridResult] = {}

    for hit, score in zip(lexical, text_scores):
        if hit.id in merged:
            continue
        merged[hit.id] = HybridResult(
            id=hit.id,
            title=hit.title,
            content=hit.content,
            record_type=hit.record_type,
            vector_score=0.0,
            text_score=score,
            combined_score=0.0,
            highlights=list(hit.highlights),
            metadata=dict(hit.metadata),
            created_at=hit.created_at,
        )

    seen_vector = set()
    for hit, score in zip(vector, vector_scores):
        if hit.id in seen_vector:
            continue
        seen_vector.add(hit.id)
        existing = merged.get(hit.id)
        if existing is not None:
            existing.vector_score = score
            continue
        meta = hit.metadata
        merged[hit.id] = HybridResult(
            id=hit.id,
            title=meta.title or hit.id,
            content="",
            record_type=meta.record_type,
            vector_score=score,
            text_score=0.0,
            combined_score=0.0,
            highlights=[],
            metadata=meta.to_dict(),
            created_at=meta.created_at,
        )

    results = list(merged.values())
    for result in results:
        result.combined_score = result.vector_score * w_v + result.text_score * w_t

    results.sort(key=lambda r: r.combined_score, reverse=True)
    if limit is not None:
        results = results[:max(limit, 0)]
    return results
