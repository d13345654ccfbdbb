"""
Contextual reranking of fused results.
Multiplicative boosts for scope, recent categories, preferred types and recency.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from hybridsearch.vector.types import as_utc

from . import config
from .fusion import HybridResult


@dataclass
class RankingContext:
    """Caller context that drives boosting. Every field is optional."""
    scope_id: Optional[str] = None
    recent_categories: List[str] = field(default_factory=list)
    preferred_types: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BoostPolicy:
    scope: float = 1.2
    category: float = 1.1
    record_type: float = 1.15
    recency: float = 1.05
    recency_days: int = 30

    @classmethod
    def from_config(cls) -> "BoostPolicy":
        return cls(
            scope=config.BOOST_SCOPE,
            category=config.BOOST_CATEGORY,
            record_type=config.BOOST_TYPE,
            recency=config.BOOST_RECENCY,
            recency_days=config.BOOST_RECENCY_DAYS,
        )


class ContextualReranker:
    """Re-scores fused results against a RankingContext."""

    def __init__(self, policy: Optional[BoostPolicy] = None):
        self.policy = policy or BoostPolicy.from_config()

    def boost_for(self, result: HybridResult, context: RankingContext, now: datetime) -> float:
        boost = 1.0
        metadata = result.metadata or {}

        if context.scope_id and metadata.get("scope_id") == context.scope_id:
            boost *= self.policy.scope

        category = metadata.get("category")
        if context.recent_categories and category and category in context.recent_categories:
            boost *= self.policy.category

        if context.preferred_types and result.record_type in context.preferred_types:
            boost *= self.policy.record_type

        if result.created_at is not None:
            age = now - as_utc(result.created_at)
            if age < timedelta(days=self.policy.recency_days):
                boost *= self.policy.recency

        return boost

    def rerank(self, results: List[HybridResult], context: Optional[RankingContext] = None,
               now: Optional[datetime] = None) -> List[HybridResult]:
        """
        Apply contextual boosts and re-sort.

        The input list is not modified; boosted copies are returned sorted by
        combined_score descending (stable).
        """
        context = context or RankingContext()
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)

        boosted = [
            replace(result, combined_score=result.combined_score * self.boost_for(result, context, now))
            for result in results
        ]
        boosted.sort(key=lambda r: r.combined_score, reverse=True)
        return boosted
