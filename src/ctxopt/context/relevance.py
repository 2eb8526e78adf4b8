"""Query relevance scoring for candidate units."""

from __future__ import annotations

from ctxopt.models.context import CandidateUnit


class KeywordRelevanceScorer:
    """Substring relevance heuristic.

    A path containing the query adds ``path_weight``; each occurrence of the
    query in the content adds ``per_match`` up to ``content_cap``. Without a
    query every unit scores ``neutral``.
    """

    def __init__(
        self,
        path_weight: float = 0.4,
        per_match: float = 0.1,
        content_cap: float = 0.6,
        neutral: float = 0.5,
    ):
        self.path_weight = path_weight
        self.per_match = per_match
        self.content_cap = content_cap
        self.neutral = neutral

    def score(self, unit: CandidateUnit, query: str) -> float:
        query_lower = query.strip().lower()
        if not query_lower:
            return self.neutral

        score = 0.0
        if query_lower in unit.path.lower():
            score += self.path_weight

        matches = unit.content.lower().count(query_lower)
        score += min(self.content_cap, matches * self.per_match)

        return min(1.0, score)
