"""Context budget allocation engine.

- Prioritizer / relevance scorer: annotate candidate units
- Strategies: allocate a token budget across units
- Message assembler and metrics: payload, cost saved, quality
- Result cache: memoize by request signature
"""

from __future__ import annotations

from .cache import RequestSignature, ResultCache
from .errors import OptimizerError, UnknownStrategyError
from .hooks import (
    Prioritizer,
    RelevanceScorer,
    Summarizer,
    TokenCounter,
    TruncatingSummarizer,
    estimate_tokens,
)
from .messages import MessageAssembler
from .metrics import FORM_WEIGHTS, cost_saved_pct, quality_score
from .optimizer import ContextOptimizer, create_context_optimizer
from .prioritizer import HeuristicPrioritizer, annotate_units
from .relevance import KeywordRelevanceScorer
from .strategies import (
    AllocationContext,
    BaseStrategy,
    StrategyName,
    StrategyRegistry,
    get_strategy,
)

__all__ = [
    # Engine
    "ContextOptimizer",
    "create_context_optimizer",
    # Strategies
    "AllocationContext",
    "BaseStrategy",
    "StrategyName",
    "StrategyRegistry",
    "get_strategy",
    # Hooks
    "HeuristicPrioritizer",
    "KeywordRelevanceScorer",
    "Prioritizer",
    "RelevanceScorer",
    "Summarizer",
    "TokenCounter",
    "TruncatingSummarizer",
    "annotate_units",
    "estimate_tokens",
    # Accounting and output
    "FORM_WEIGHTS",
    "MessageAssembler",
    "cost_saved_pct",
    "quality_score",
    # Cache
    "RequestSignature",
    "ResultCache",
    # Errors
    "OptimizerError",
    "UnknownStrategyError",
]
