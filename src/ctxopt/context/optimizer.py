"""Context Optimizer: fit a candidate pool into a token budget.

Pipeline for one optimize() call:
1. Select: apply the request's include/exclude path filters
2. Annotate: tier and relevance on copies of the units
3. Allocate: run the configured strategy over the budget
4. Assemble: build the message payload, extra context first if it fits
5. Account: cost saved and quality score
6. Cache: memoize by request signature
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from ctxopt.config.schema import OptimizerConfig
from ctxopt.context.cache import RequestSignature, ResultCache
from ctxopt.context.hooks import (
    Prioritizer,
    RelevanceScorer,
    Summarizer,
    TokenCounter,
    TruncatingSummarizer,
    estimate_tokens,
)
from ctxopt.context.messages import MessageAssembler
from ctxopt.context.metrics import cost_saved_pct, quality_score
from ctxopt.context.prioritizer import HeuristicPrioritizer, annotate_units, is_entry_point
from ctxopt.context.relevance import KeywordRelevanceScorer
from ctxopt.context.strategies import AllocationContext, BaseStrategy, StrategyRegistry
from ctxopt.models.context import (
    CandidateUnit,
    CodebaseAnalysis,
    OptimizationResult,
    OptimizeRequest,
    Tier,
    UnitPartition,
)

logger = logging.getLogger(__name__)


class ContextOptimizer:
    """Decides which units go in full, summarized, as metadata, or not at all.

    Example:
        optimizer = ContextOptimizer(OptimizerConfig(strategy="hybrid"))
        result = await optimizer.optimize(
            OptimizeRequest(query="auth", units=units, target_tokens=8000)
        )
        prompt = result.messages
    """

    def __init__(
        self,
        config: Optional[OptimizerConfig] = None,
        token_counter: Optional[TokenCounter] = None,
        summarizer: Optional[Summarizer] = None,
        prioritizer: Optional[Prioritizer] = None,
        scorer: Optional[RelevanceScorer] = None,
    ):
        """Initialize the optimizer.

        Args:
            config: Optimizer configuration
            token_counter: Function text -> tokens (default char/4 estimate)
            summarizer: Function (text, target_tokens) -> summary, sync or async
                        (default truncation)
            prioritizer: Tier assignment hook
            scorer: Relevance scoring hook

        Raises:
            UnknownStrategyError: If config.strategy is not registered.
        """
        self.config = config or OptimizerConfig()
        self._strategy: BaseStrategy = StrategyRegistry.get(self.config.strategy)

        self._count_tokens = token_counter or estimate_tokens
        self._summarizer = summarizer or TruncatingSummarizer()
        self._prioritizer = prioritizer or HeuristicPrioritizer()
        self._scorer = scorer or KeywordRelevanceScorer()

        self._assembler = MessageAssembler(self._count_tokens)
        self._cache = ResultCache()

    @property
    def strategy(self) -> str:
        return self._strategy.name

    @property
    def cache(self) -> ResultCache:
        return self._cache

    async def optimize(
        self,
        request: Optional[OptimizeRequest] = None,
        **kwargs: Any,
    ) -> OptimizationResult:
        """Optimize a candidate pool for one LLM call.

        Args:
            request: The request; alternatively pass OptimizeRequest fields
                     as keyword arguments

        Returns:
            OptimizationResult, the cached instance on a repeat signature
        """
        if request is None:
            request = OptimizeRequest(**kwargs)

        if not self.config.enable_cache:
            return await self._optimize(request)

        key = RequestSignature.from_request(request).key
        return await self._cache.get_or_compute(key, lambda: self._optimize(request))

    def clear_cache(self) -> None:
        """Drop all cached results."""
        self._cache.clear()

    def analyze(
        self,
        units: Sequence[CandidateUnit],
        query: str = "",
        preserve_units: Sequence[str] = (),
    ) -> CodebaseAnalysis:
        """Summarize how a candidate pool would be tiered.

        Args:
            units: Candidate units
            query: Task description used for tiering and relevance
            preserve_units: Paths forced to critical

        Returns:
            CodebaseAnalysis with per-tier units, dependencies and entry points
        """
        annotated = annotate_units(
            units, query, self._prioritizer, self._scorer, preserve_units
        )

        analysis = CodebaseAnalysis(
            total_units=len(annotated),
            total_tokens=sum(unit.tokens for unit in annotated),
        )
        for unit in annotated:
            analysis.units_by_tier[unit.tier].append(unit)
            if unit.depends_on:
                analysis.dependencies[unit.path] = list(unit.depends_on)
            if is_entry_point(unit):
                analysis.entry_points.append(unit.path)

        return analysis

    def _select(self, request: OptimizeRequest) -> list[CandidateUnit]:
        """Apply the request's path filters."""
        include = set(request.include_units)
        exclude = set(request.exclude_units)

        selected = []
        for unit in request.units:
            if include and unit.path not in include:
                continue
            if unit.path in exclude:
                continue
            selected.append(unit)

        logger.debug(f"Selected {len(selected)} of {len(request.units)} units")
        return selected

    async def _optimize(self, request: OptimizeRequest) -> OptimizationResult:
        query = request.query or ""
        units = annotate_units(
            self._select(request),
            query,
            self._prioritizer,
            self._scorer,
            request.preserve_units,
        )
        considered = [unit for unit in units if unit.tier is not Tier.EXCLUDE]

        budget = (
            request.target_tokens
            if request.target_tokens is not None
            else self.config.max_tokens
        )
        ctx = AllocationContext(
            budget=budget,
            count_tokens=self._count_tokens,
            summarizer=self._summarizer,
            config=self.config,
        )
        allocation = await self._strategy.allocate(units, ctx)

        assembled = self._assembler.assemble(
            allocation.chunks,
            query,
            request.extra_context,
            allocation.remaining,
        )

        tokens_used = allocation.tokens_used + assembled.extra_tokens
        original_tokens = sum(unit.tokens for unit in units)

        result = OptimizationResult(
            messages=tuple(assembled.messages),
            partition=UnitPartition(
                full=tuple(allocation.full),
                summarized=tuple(allocation.summarized),
                excluded=tuple(allocation.excluded),
                total_units=len(considered),
            ),
            tokens_used=tokens_used,
            original_tokens=original_tokens,
            cost_saved_pct=cost_saved_pct(original_tokens, tokens_used),
            quality_score=quality_score(allocation.chunks, considered),
            strategy=self._strategy.name,
            chunks=tuple(allocation.chunks),
            warnings=tuple(allocation.warnings + assembled.warnings),
        )

        logger.info(
            f"Optimized {len(considered)} units with {result.strategy}: "
            f"{tokens_used}/{budget} tokens, {result.cost_saved_pct:.1f}% saved, "
            f"quality {result.quality_score:.2f}"
        )
        return result


def create_context_optimizer(
    config: Optional[OptimizerConfig] = None,
    **hooks: Any,
) -> ContextOptimizer:
    """Create a context optimizer instance."""
    return ContextOptimizer(config=config, **hooks)
