"""Data models for ctxopt."""

from ctxopt.models.context import (
    CandidateUnit,
    ChunkForm,
    CodebaseAnalysis,
    ContentChunk,
    OptimizationResult,
    OptimizeRequest,
    Tier,
    UnitPartition,
)
from ctxopt.models.message import ChatMessage

__all__ = [
    "CandidateUnit",
    "ChatMessage",
    "ChunkForm",
    "CodebaseAnalysis",
    "ContentChunk",
    "OptimizationResult",
    "OptimizeRequest",
    "Tier",
    "UnitPartition",
]
