"""Cost and quality accounting for an allocation."""

from __future__ import annotations

from typing import Sequence

from ctxopt.models.context import CandidateUnit, ChunkForm, ContentChunk

FORM_WEIGHTS: dict[ChunkForm, float] = {
    ChunkForm.FULL: 1.0,
    ChunkForm.SUMMARY: 0.6,
    ChunkForm.METADATA: 0.3,
}


def cost_saved_pct(original_tokens: int, tokens_used: int) -> float:
    """Percentage of original tokens not paid for, floored at zero."""
    if original_tokens <= 0:
        return 0.0
    return max(0.0, (original_tokens - tokens_used) / original_tokens * 100)


def quality_score(
    chunks: Sequence[ContentChunk],
    units: Sequence[CandidateUnit],
) -> float:
    """Weighted share of relevance that survived the allocation.

    Excluded units count in the denominator only. When every unit has zero
    relevance, each unit weighs 1 instead so exclusion still shows.
    """
    if not units:
        return 1.0

    possible = sum(unit.relevance or 0.0 for unit in units)
    if possible > 0:
        achieved = sum(chunk.relevance * FORM_WEIGHTS[chunk.form] for chunk in chunks)
    else:
        possible = float(len(units))
        achieved = sum(FORM_WEIGHTS[chunk.form] for chunk in chunks)

    return min(1.0, max(0.0, achieved / possible))
