"""Budget allocation strategies.

Every strategy turns annotated candidate units and a token budget into a
partition of {full, summarized, metadata-only, excluded} plus the chunks
that realize it. Units tiered EXCLUDE never reach a strategy, and a
non-positive budget excludes everything before any strategy runs.

Strategies:
- full: input order, verbatim until the first overflow
- rag: relevance order, verbatim until the first overflow
- summarize: every unit summarized to a proportional share of the budget
- hybrid: critical / important / supplementary phases over one budget
- prioritize: alias of hybrid
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from ctxopt.config.schema import OptimizerConfig
from ctxopt.context.errors import UnknownStrategyError
from ctxopt.context.hooks import Summarizer, TokenCounter, run_summarizer
from ctxopt.models.context import CandidateUnit, ChunkForm, ContentChunk, Tier

logger = logging.getLogger(__name__)


class StrategyName(str, Enum):
    """Built-in allocation strategies."""

    HYBRID = "hybrid"
    FULL = "full"
    RAG = "rag"
    SUMMARIZE = "summarize"
    PRIORITIZE = "prioritize"


@dataclass
class AllocationContext:
    """Budget and collaborators shared by one allocation run."""

    budget: int
    count_tokens: TokenCounter
    summarizer: Summarizer
    config: OptimizerConfig = field(default_factory=OptimizerConfig)

    @property
    def tolerance(self) -> int:
        return self.config.summary_overshoot_tolerance


@dataclass
class Allocation:
    """Running state and outcome of one allocation run."""

    budget: int
    chunks: list[ContentChunk] = field(default_factory=list)
    full: list[str] = field(default_factory=list)
    summarized: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    tokens_used: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return self.budget - self.tokens_used

    def add_chunk(self, unit: CandidateUnit, content: str, tokens: int, form: ChunkForm) -> None:
        self.chunks.append(
            ContentChunk(
                content=content,
                tokens=tokens,
                source=unit.path,
                form=form,
                relevance=unit.relevance if unit.relevance is not None else 0.0,
            )
        )
        self.tokens_used += tokens
        if form is ChunkForm.FULL:
            self.full.append(unit.path)
        else:
            self.summarized.append(unit.path)
        logger.debug(f"{form.value}: {unit.path} ({tokens} tokens, {self.tokens_used} used)")

    def add_full(self, unit: CandidateUnit) -> None:
        self.add_chunk(unit, unit.content, unit.tokens, ChunkForm.FULL)

    def exclude(self, unit: CandidateUnit) -> None:
        self.excluded.append(unit.path)
        logger.debug(f"excluded: {unit.path} ({unit.tokens} tokens)")

    def exclude_all(self, units: Sequence[CandidateUnit]) -> None:
        for unit in units:
            self.exclude(unit)


def metadata_record(unit: CandidateUnit) -> str:
    """Metadata-only stand-in for a unit's content."""
    return f"File: {unit.path}\nType: {unit.kind or 'unknown'}\nTokens: {unit.tokens}"


def clamp_to_tokens(text: str, limit: int, count_tokens: TokenCounter) -> str:
    """Cut text until the token counter reports at most ``limit`` tokens."""
    if limit <= 0:
        return ""
    tokens = count_tokens(text)
    while text and tokens > limit:
        cut = min(len(text) - 1, int(len(text) * limit / tokens))
        text = text[: max(0, cut)]
        tokens = count_tokens(text)
    return text


class BaseStrategy(ABC):
    """Abstract base class for allocation strategies.

    Subclasses implement ``_allocate`` over units that are already
    annotated and stripped of EXCLUDE-tier entries.
    """

    name: str = ""

    async def allocate(
        self,
        units: Sequence[CandidateUnit],
        ctx: AllocationContext,
    ) -> Allocation:
        """Partition units within ctx.budget.

        Args:
            units: Annotated candidate units, in input order
            ctx: Budget and collaborators

        Returns:
            Allocation with chunks, partition lists and warnings
        """
        allocation = Allocation(budget=ctx.budget)
        considered = [unit for unit in units if unit.tier is not Tier.EXCLUDE]

        if ctx.budget <= 0:
            allocation.exclude_all(considered)
            return allocation

        await self._allocate(considered, ctx, allocation)
        return allocation

    @abstractmethod
    async def _allocate(
        self,
        units: list[CandidateUnit],
        ctx: AllocationContext,
        allocation: Allocation,
    ) -> None:
        pass

    async def _summarize(
        self,
        unit: CandidateUnit,
        target_tokens: int,
        ctx: AllocationContext,
        allocation: Allocation,
    ) -> None:
        """Summarize a unit into the allocation, falling back on failure."""
        try:
            summary = await run_summarizer(ctx.summarizer, unit.content, target_tokens)
        except Exception as exc:
            self._summary_failed(unit, exc, ctx, allocation)
            return
        self._add_summary(unit, summary, target_tokens, ctx, allocation)

    def _add_summary(
        self,
        unit: CandidateUnit,
        summary: str,
        target_tokens: int,
        ctx: AllocationContext,
        allocation: Allocation,
    ) -> None:
        """Add a summary chunk, cut back to target + tolerance and the budget headroom."""
        headroom = allocation.remaining + ctx.tolerance
        if headroom <= 0:
            allocation.warnings.append(f"no budget left to summarize {unit.path}")
            allocation.exclude(unit)
            return

        limit = min(max(0, target_tokens) + ctx.tolerance, headroom)
        tokens = ctx.count_tokens(summary)
        if tokens > limit:
            logger.debug(
                f"summary for {unit.path} overshot: {tokens} tokens, limit {limit}"
            )
            summary = clamp_to_tokens(summary, limit, ctx.count_tokens)
            tokens = ctx.count_tokens(summary)

        allocation.add_chunk(unit, summary, tokens, ChunkForm.SUMMARY)

    def _summary_failed(
        self,
        unit: CandidateUnit,
        exc: Exception,
        ctx: AllocationContext,
        allocation: Allocation,
    ) -> None:
        logger.warning(f"Summarization failed for {unit.path}: {exc}")
        allocation.warnings.append(f"summarization failed for {unit.path}")

        if ctx.config.metadata_on_summary_failure and self._add_metadata(unit, ctx, allocation):
            return
        allocation.exclude(unit)

    def _add_metadata(
        self,
        unit: CandidateUnit,
        ctx: AllocationContext,
        allocation: Allocation,
    ) -> bool:
        """Add a metadata-only record if it fits. Returns success status."""
        record = metadata_record(unit)
        tokens = ctx.count_tokens(record)
        if tokens > allocation.remaining:
            return False
        allocation.add_chunk(unit, record, tokens, ChunkForm.METADATA)
        return True


class FullStrategy(BaseStrategy):
    """Verbatim inclusion in input order; everything after the first overflow is dropped."""

    name = StrategyName.FULL.value

    async def _allocate(self, units, ctx, allocation) -> None:
        for index, unit in enumerate(units):
            if allocation.tokens_used + unit.tokens > ctx.budget:
                allocation.exclude_all(units[index:])
                return
            allocation.add_full(unit)


class RagStrategy(BaseStrategy):
    """Verbatim inclusion by descending relevance.

    Ties keep input order. The included set is always a prefix of the
    relevance order.
    """

    name = StrategyName.RAG.value

    async def _allocate(self, units, ctx, allocation) -> None:
        ranked = sorted(units, key=lambda unit: -(unit.relevance or 0.0))
        for index, unit in enumerate(ranked):
            if allocation.tokens_used + unit.tokens > ctx.budget:
                allocation.exclude_all(ranked[index:])
                return
            allocation.add_full(unit)


class SummarizeStrategy(BaseStrategy):
    """Summarize every unit to its proportional share of the budget."""

    name = StrategyName.SUMMARIZE.value

    async def _allocate(self, units, ctx, allocation) -> None:
        total = sum(unit.tokens for unit in units)
        targets = [
            math.floor(unit.tokens / total * ctx.budget) if total > 0 else 0
            for unit in units
        ]

        if ctx.config.parallel_summaries:
            await self._allocate_parallel(units, targets, ctx, allocation)
            return

        for unit, target in zip(units, targets):
            await self._summarize(unit, target, ctx, allocation)

    async def _allocate_parallel(self, units, targets, ctx, allocation) -> None:
        # Targets are fixed up front, so calls can overlap; results are
        # applied in input order.
        outcomes = await asyncio.gather(
            *(
                run_summarizer(ctx.summarizer, unit.content, target)
                for unit, target in zip(units, targets)
            ),
            return_exceptions=True,
        )
        for unit, target, outcome in zip(units, targets, outcomes):
            if isinstance(outcome, Exception):
                self._summary_failed(unit, outcome, ctx, allocation)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                self._add_summary(unit, outcome, target, ctx, allocation)


class HybridStrategy(BaseStrategy):
    """Three ordered phases over a single running budget.

    1. Critical: full while within the critical share of the budget,
       otherwise summarized to a fraction of the unit's size.
    2. Important: full if it fits what remains, summarized to half the
       remainder while the remainder is large enough, else excluded.
    3. Supplementary: metadata-only records while the remainder lasts.

    Units are processed in input order within each phase.
    """

    name = StrategyName.HYBRID.value

    async def _allocate(self, units, ctx, allocation) -> None:
        by_tier: dict[Tier, list[CandidateUnit]] = {
            Tier.CRITICAL: [],
            Tier.IMPORTANT: [],
            Tier.SUPPLEMENTARY: [],
        }
        for unit in units:
            by_tier[unit.tier or Tier.IMPORTANT].append(unit)

        await self._critical_phase(by_tier[Tier.CRITICAL], ctx, allocation)
        await self._important_phase(by_tier[Tier.IMPORTANT], ctx, allocation)
        self._supplementary_phase(by_tier[Tier.SUPPLEMENTARY], ctx, allocation)

    async def _critical_phase(self, units, ctx, allocation) -> None:
        hybrid = ctx.config.hybrid
        phase_budget = ctx.budget * hybrid.critical_share

        for unit in units:
            if allocation.tokens_used + unit.tokens <= phase_budget:
                allocation.add_full(unit)
                continue

            if allocation.remaining <= 0:
                allocation.warnings.append(f"no budget left to summarize {unit.path}")
                allocation.exclude(unit)
                continue

            # A zero target still goes through the summarizer
            target = min(
                math.floor(unit.tokens * hybrid.critical_summary_ratio),
                allocation.remaining,
            )
            await self._summarize(unit, target, ctx, allocation)

    async def _important_phase(self, units, ctx, allocation) -> None:
        hybrid = ctx.config.hybrid

        for index, unit in enumerate(units):
            remaining = allocation.remaining
            if remaining <= 0:
                allocation.exclude_all(units[index:])
                return

            if unit.tokens <= remaining:
                allocation.add_full(unit)
            elif remaining > hybrid.important_min_remaining:
                target = math.floor(remaining * hybrid.important_summary_ratio)
                await self._summarize(unit, target, ctx, allocation)
            else:
                allocation.exclude(unit)

    def _supplementary_phase(self, units, ctx, allocation) -> None:
        hybrid = ctx.config.hybrid

        for index, unit in enumerate(units):
            if allocation.remaining <= hybrid.supplementary_min_remaining:
                allocation.exclude_all(units[index:])
                return
            if not self._add_metadata(unit, ctx, allocation):
                allocation.exclude(unit)


class PrioritizeStrategy(HybridStrategy):
    """Alias of hybrid under its own name."""

    # TODO: replace with a tier-only variant if product confirms the
    # stricter behavior; until then results match hybrid exactly.
    name = StrategyName.PRIORITIZE.value


class StrategyRegistry:
    """Registry for allocation strategies.

    Example:
        StrategyRegistry.register(MyStrategy)
        strategy = StrategyRegistry.get("my-strategy")
    """

    _strategies: dict[str, type[BaseStrategy]] = {}

    @classmethod
    def register(cls, strategy_class: type[BaseStrategy]) -> None:
        """Register a strategy class under its name."""
        if not strategy_class.name:
            raise ValueError(f"{strategy_class.__name__} has no strategy name")
        cls._strategies[strategy_class.name] = strategy_class

    @classmethod
    def get(cls, name: str) -> BaseStrategy:
        """Create a strategy instance by name.

        Raises:
            UnknownStrategyError: If no strategy is registered under name.
        """
        key = name.value if isinstance(name, StrategyName) else str(name).strip().lower()
        strategy_class = cls._strategies.get(key)
        if strategy_class is None:
            raise UnknownStrategyError(str(name), cls.list_strategies())
        return strategy_class()

    @classmethod
    def list_strategies(cls) -> list[str]:
        """List all registered strategy names."""
        return list(cls._strategies.keys())

    @classmethod
    def unregister(cls, name: str) -> bool:
        """Unregister a strategy. Returns True if it was registered."""
        return cls._strategies.pop(name, None) is not None


for _strategy in (
    HybridStrategy,
    FullStrategy,
    RagStrategy,
    SummarizeStrategy,
    PrioritizeStrategy,
):
    StrategyRegistry.register(_strategy)


def get_strategy(name: Optional[str]) -> BaseStrategy:
    """Look up a strategy, defaulting to hybrid."""
    return StrategyRegistry.get(name or StrategyName.HYBRID.value)
