"""Pluggable collaborator interfaces and their defaults.

Each hook carries exactly one capability and is injected when the
optimizer is constructed:

- TokenCounter: text -> token estimate
- Summarizer: (text, target_tokens) -> compressed text, sync or async
- Prioritizer: (unit, query) -> Tier
- RelevanceScorer: (unit, query) -> float in [0, 1]
"""

from __future__ import annotations

import inspect
import math
from typing import TYPE_CHECKING, Awaitable, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from ctxopt.models.context import CandidateUnit, Tier


@runtime_checkable
class TokenCounter(Protocol):
    def __call__(self, text: str) -> int: ...


@runtime_checkable
class Summarizer(Protocol):
    def __call__(self, text: str, target_tokens: int) -> Union[str, Awaitable[str]]: ...


@runtime_checkable
class Prioritizer(Protocol):
    def prioritize(self, unit: "CandidateUnit", query: str) -> "Tier": ...


@runtime_checkable
class RelevanceScorer(Protocol):
    def score(self, unit: "CandidateUnit", query: str) -> float: ...


def estimate_tokens(text: str) -> int:
    """Rough token estimate: 1 token ~= 4 characters."""
    return math.ceil(len(text) / 4)


async def run_summarizer(summarizer: Summarizer, text: str, target_tokens: int) -> str:
    """Call a summarizer and await it when it returns an awaitable."""
    result = summarizer(text, target_tokens)
    if inspect.isawaitable(result):
        result = await result
    return str(result)


class TruncatingSummarizer:
    """Structure-aware truncation used when no summarizer is injected.

    Keeps the first and last paragraphs when that fits, otherwise cuts
    the text with a truncation marker. For real summaries, inject an
    LLM-backed summarizer.
    """

    marker = "\n\n[...truncated...]"

    def __init__(self, chars_per_token: int = 4):
        self.chars_per_token = chars_per_token

    async def __call__(self, text: str, target_tokens: int) -> str:
        target_chars = max(0, target_tokens) * self.chars_per_token

        if len(text) <= target_chars:
            return text

        paragraphs = text.split("\n\n")
        if len(paragraphs) > 2:
            middle_count = len(paragraphs) - 2
            result = (
                f"{paragraphs[0]}\n\n[...{middle_count} sections omitted...]"
                f"\n\n{paragraphs[-1]}"
            )
            if len(result) <= target_chars:
                return result

        if target_chars <= len(self.marker):
            return text[:target_chars]
        return text[: target_chars - len(self.marker)] + self.marker
