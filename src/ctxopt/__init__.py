"""ctxopt - token budget allocation for LLM prompt context."""

from ctxopt.context import ContextOptimizer, create_context_optimizer
from ctxopt.models import CandidateUnit, OptimizationResult, OptimizeRequest, Tier

__version__ = "0.1.0"

__all__ = [
    "CandidateUnit",
    "ContextOptimizer",
    "OptimizationResult",
    "OptimizeRequest",
    "Tier",
    "create_context_optimizer",
]
