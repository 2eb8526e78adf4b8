from __future__ import annotations

from typing import Optional

import pytest

from ctxopt.config.schema import OptimizerConfig
from ctxopt.context import ContextOptimizer
from ctxopt.models.context import CandidateUnit, Tier


def count_words(text: str) -> int:
    """Token counter where one whitespace-separated word is one token."""
    return len(text.split())


class RecordingSummarizer:
    """Summarizer stub that records targets and returns ``target + overshoot`` words."""

    def __init__(self, overshoot: int = 0) -> None:
        self.overshoot = overshoot
        self.calls: list[tuple[str, int]] = []

    async def __call__(self, text: str, target_tokens: int) -> str:
        self.calls.append((text, target_tokens))
        return " ".join(["w"] * max(0, target_tokens + self.overshoot))

    @property
    def targets(self) -> list[int]:
        return [target for _, target in self.calls]


class FailingSummarizer:
    """Summarizer stub that raises for every call."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, text: str, target_tokens: int) -> str:
        self.calls += 1
        raise RuntimeError("summarizer unavailable")


@pytest.fixture
def summarizer() -> RecordingSummarizer:
    return RecordingSummarizer()


@pytest.fixture
def make_unit():
    def _make(
        path: str,
        tokens: int,
        tier: Optional[Tier] = None,
        relevance: Optional[float] = 0.5,
        content: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> CandidateUnit:
        return CandidateUnit(
            path=path,
            content=content if content is not None else f"body of {path}",
            tokens=tokens,
            tier=tier,
            relevance=relevance,
            kind=kind,
        )

    return _make


@pytest.fixture
def make_optimizer(summarizer):
    def _make(strategy: str = "hybrid", summarizer_override=None, **config_kwargs) -> ContextOptimizer:
        config = OptimizerConfig(strategy=strategy, **config_kwargs)
        return ContextOptimizer(
            config,
            token_counter=count_words,
            summarizer=summarizer_override or summarizer,
        )

    return _make
