"""Data models for context budget allocation.

Candidate units are the raw material (source files, document chunks),
chunks are what one optimize() call realizes for each unit, and the
optimization result carries the assembled messages together with the
partition and cost/quality accounting.

Tiers:
- CRITICAL: Processed first, included in full while the critical share lasts
- IMPORTANT: Included in full or summarized from what remains
- SUPPLEMENTARY: Reduced to metadata-only records
- EXCLUDE: Never considered by any strategy
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

from ctxopt.models.message import ChatMessage


class Tier(str, Enum):
    """Processing tier for a candidate unit."""

    CRITICAL = "critical"  # Must include, summarize only when oversized
    IMPORTANT = "important"  # Include if space allows
    SUPPLEMENTARY = "supplementary"  # Metadata only
    EXCLUDE = "exclude"  # Never include


class ChunkForm(str, Enum):
    """How much of a unit survived into the context."""

    FULL = "full"
    SUMMARY = "summary"
    METADATA = "metadata"


@dataclass(frozen=True)
class CandidateUnit:
    """A unit of content competing for space in the prompt context.

    Units are immutable. Tier and relevance left as None are computed once
    per optimize() call and stored on an annotated copy, never on the
    caller's instance.
    """

    path: str
    content: str = ""

    # Estimated from content (4 chars ~= 1 token) when not supplied
    tokens: Optional[int] = None

    tier: Optional[Tier] = None
    relevance: Optional[float] = None

    last_modified: Optional[datetime] = None
    kind: Optional[str] = None
    depends_on: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.tokens is None:
            object.__setattr__(self, "tokens", math.ceil(len(self.content) / 4))
        if self.tokens < 0:
            raise ValueError(f"unit {self.path!r} has negative token count {self.tokens}")
        if self.tier is not None and not isinstance(self.tier, Tier):
            object.__setattr__(self, "tier", Tier(self.tier))
        if not isinstance(self.depends_on, tuple):
            object.__setattr__(self, "depends_on", tuple(self.depends_on))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "path": self.path,
            "content": self.content,
            "tokens": self.tokens,
            "tier": self.tier.value if self.tier else None,
            "relevance": self.relevance,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "kind": self.kind,
            "depends_on": list(self.depends_on),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateUnit":
        """Deserialize from dictionary."""
        last_modified = data.get("last_modified")
        return cls(
            path=data["path"],
            content=data.get("content", ""),
            tokens=data.get("tokens"),
            tier=Tier(data["tier"]) if data.get("tier") else None,
            relevance=data.get("relevance"),
            last_modified=datetime.fromisoformat(last_modified) if last_modified else None,
            kind=data.get("kind"),
            depends_on=tuple(data.get("depends_on") or ()),
        )


@dataclass(frozen=True)
class ContentChunk:
    """The realized output fragment for one unit."""

    content: str
    tokens: int
    source: str
    form: ChunkForm
    relevance: float


@dataclass(frozen=True)
class UnitPartition:
    """Where every considered unit ended up.

    Metadata-only units count as summarized: they made it into the context
    in lossy form.
    """

    full: tuple[str, ...] = ()
    summarized: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()
    total_units: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "full": list(self.full),
            "summarized": list(self.summarized),
            "excluded": list(self.excluded),
            "total_units": self.total_units,
        }


@dataclass(frozen=True)
class OptimizationResult:
    """Outcome of a single optimize() call."""

    messages: tuple[ChatMessage, ...]
    partition: UnitPartition
    tokens_used: int
    original_tokens: int
    cost_saved_pct: float
    quality_score: float
    strategy: str
    chunks: tuple[ContentChunk, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def content(self) -> str:
        """All message contents joined, in message order."""
        return "\n\n".join(message.content for message in self.messages)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "messages": [message.model_dump() for message in self.messages],
            "partition": self.partition.to_dict(),
            "tokens_used": self.tokens_used,
            "original_tokens": self.original_tokens,
            "cost_saved_pct": self.cost_saved_pct,
            "quality_score": self.quality_score,
            "strategy": self.strategy,
            "chunks": [
                {
                    "source": chunk.source,
                    "form": chunk.form.value,
                    "tokens": chunk.tokens,
                    "relevance": chunk.relevance,
                }
                for chunk in self.chunks
            ],
            "warnings": list(self.warnings),
        }


@dataclass
class OptimizeRequest:
    """Parameters for one optimize() call.

    Units must already be loaded; see ctxopt.sources for building them
    from a directory.
    """

    query: str = ""
    units: Sequence[CandidateUnit] = ()

    # Restrict to these paths when non-empty
    include_units: Sequence[str] = ()
    exclude_units: Sequence[str] = ()

    # Always processed as critical
    preserve_units: Sequence[str] = ()

    # Prepended as its own leading message when it fits
    extra_context: str = ""

    # Falls back to the optimizer's max_tokens
    target_tokens: Optional[int] = None


@dataclass
class CodebaseAnalysis:
    """Tier breakdown of a candidate set, without allocating any budget."""

    total_units: int = 0
    total_tokens: int = 0
    units_by_tier: dict[Tier, list[CandidateUnit]] = field(
        default_factory=lambda: {tier: [] for tier in Tier}
    )
    dependencies: dict[str, list[str]] = field(default_factory=dict)
    entry_points: list[str] = field(default_factory=list)

    def tier_counts(self) -> dict[str, int]:
        """Number of units per tier, keyed by tier value."""
        return {tier.value: len(units) for tier, units in self.units_by_tier.items()}

    def tier_tokens(self) -> dict[str, int]:
        """Total tokens per tier, keyed by tier value."""
        return {
            tier.value: sum(unit.tokens for unit in units)
            for tier, units in self.units_by_tier.items()
        }
