"""Tier assignment for candidate units."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence

from ctxopt.context.hooks import Prioritizer, RelevanceScorer
from ctxopt.models.context import CandidateUnit, Tier

logger = logging.getLogger(__name__)

ENTRY_POINT_MARKERS = ("index.", "main.", "__main__.")
TEST_MARKERS = (".test.", ".spec.", "_test.", "/test_", "/tests/")
CONFIG_MARKERS = ("config",)
CONFIG_SUFFIXES = (".json", ".toml", ".yaml", ".yml", ".ini", ".cfg")


class HeuristicPrioritizer:
    """Path-based tier heuristic.

    Order of checks:
    1. Entry points (index.*, main.*, __main__.*) -> critical
    2. Tests -> supplementary
    3. Config files -> supplementary
    4. Everything else, including query matches -> important
    """

    def prioritize(self, unit: CandidateUnit, query: str) -> Tier:
        path = "/" + unit.path.lower().replace("\\", "/")
        name = path.rsplit("/", 1)[-1]

        if name.startswith(ENTRY_POINT_MARKERS):
            return Tier.CRITICAL

        if name.startswith("test_") or any(marker in path for marker in TEST_MARKERS):
            return Tier.SUPPLEMENTARY

        if name.endswith(CONFIG_SUFFIXES) or any(marker in path for marker in CONFIG_MARKERS):
            return Tier.SUPPLEMENTARY

        # Query matches land here too; the query only moves relevance
        return Tier.IMPORTANT


def is_entry_point(unit: CandidateUnit) -> bool:
    """Check whether a unit's path looks like an entry point."""
    name = unit.path.lower().replace("\\", "/").rsplit("/", 1)[-1]
    return name.startswith(ENTRY_POINT_MARKERS)


def annotate_units(
    units: Iterable[CandidateUnit],
    query: str,
    prioritizer: Prioritizer,
    scorer: RelevanceScorer,
    preserve_units: Sequence[str] = (),
) -> list[CandidateUnit]:
    """Return annotated copies of units with tier and relevance filled in.

    Preserved paths are forced to critical regardless of any supplied or
    computed tier. Caller-supplied tiers and relevances are kept otherwise.
    Relevance is clamped to [0, 1]. Input units are never modified.
    """
    preserved = set(preserve_units)
    annotated: list[CandidateUnit] = []

    for unit in units:
        if unit.path in preserved:
            tier = Tier.CRITICAL
        elif unit.tier is not None:
            tier = unit.tier
        else:
            tier = prioritizer.prioritize(unit, query)

        relevance = unit.relevance
        if relevance is None:
            relevance = scorer.score(unit, query)
        relevance = min(1.0, max(0.0, float(relevance)))

        if tier is not unit.tier or relevance != unit.relevance:
            unit = replace(unit, tier=tier, relevance=relevance)
        annotated.append(unit)

    logger.debug(f"Annotated {len(annotated)} units ({len(preserved)} preserved paths)")
    return annotated
