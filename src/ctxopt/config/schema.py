"""Pydantic configuration models for ctxopt."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HybridConfig(BaseModel):
    """Phase thresholds for the hybrid allocation strategy."""

    # Share of the budget reserved for the critical phase
    critical_share: float = Field(default=0.6, ge=0.0, le=1.0)

    # Oversized critical units are summarized to this fraction of their size
    critical_summary_ratio: float = Field(default=0.3, ge=0.0, le=1.0)

    # Oversized important units are summarized to this fraction of what remains
    important_summary_ratio: float = Field(default=0.5, ge=0.0, le=1.0)

    # Below these remainders a phase stops summarizing / emitting metadata
    important_min_remaining: int = Field(default=100, ge=0)
    supplementary_min_remaining: int = Field(default=50, ge=0)


class OptimizerConfig(BaseModel):
    """Configuration for the context optimizer."""

    max_tokens: int = 400000
    strategy: str = "hybrid"
    enable_cache: bool = True

    # Slack over the budget tolerated from summarizer overshoot
    summary_overshoot_tolerance: int = Field(default=16, ge=0)

    # Keep a metadata-only record when summarization raises
    metadata_on_summary_failure: bool = False

    # Run independent summarizer calls concurrently
    parallel_summaries: bool = False

    hybrid: HybridConfig = Field(default_factory=HybridConfig)


class SourcesConfig(BaseModel):
    """Configuration for loading candidate units from disk."""

    exclude_dirs: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "__pycache__",
            "dist",
            "build",
            "venv",
            ".venv",
        ]
    )
    max_file_bytes: int = Field(default=1_000_000, gt=0)
    include_hidden: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration for the CLI."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


class CtxoptConfig(BaseModel):
    """Root configuration."""

    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
