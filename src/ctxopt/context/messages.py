"""Serialization of allocated chunks into an ordered message payload."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ctxopt.context.hooks import TokenCounter
from ctxopt.models.context import ChunkForm, ContentChunk
from ctxopt.models.message import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class AssembledMessages:
    """Messages plus the extra-context accounting that went with them."""

    messages: list[ChatMessage] = field(default_factory=list)
    extra_tokens: int = 0
    warnings: list[str] = field(default_factory=list)


class MessageAssembler:
    """Builds the context message from chunks.

    Chunks are grouped as Full Files, Summarized Files and File Metadata,
    in that order, each chunk headed by its source. Extra context goes in
    its own leading message when it fits the remaining budget.
    """

    def __init__(self, token_counter: TokenCounter, role: str = "system"):
        self._count_tokens = token_counter
        self.role = role

    def build_context(self, chunks: Sequence[ContentChunk], query: str = "") -> str:
        """Render chunks as a single context document."""
        parts: list[str] = []

        if query:
            parts.append(f"Task: {query}\n")

        parts.append("Context:\n")

        full = [c for c in chunks if c.form is ChunkForm.FULL]
        summaries = [c for c in chunks if c.form is ChunkForm.SUMMARY]
        metadata = [c for c in chunks if c.form is ChunkForm.METADATA]

        if full:
            parts.append("\nFull Files:\n")
            for chunk in full:
                parts.append(f"\n--- {chunk.source} ---\n{chunk.content}\n")

        if summaries:
            parts.append("\nSummarized Files:\n")
            for chunk in summaries:
                parts.append(f"\n--- {chunk.source} (summarized) ---\n{chunk.content}\n")

        if metadata:
            parts.append("\nFile Metadata:\n")
            for chunk in metadata:
                parts.append(f"{chunk.content}\n")

        return "".join(parts)

    def assemble(
        self,
        chunks: Sequence[ContentChunk],
        query: str,
        extra_context: str,
        remaining_budget: int,
    ) -> AssembledMessages:
        """Build the ordered message list.

        Args:
            chunks: Chunks in allocation order
            query: Task description for the header
            extra_context: Caller-supplied leading context, may be empty
            remaining_budget: Tokens left after allocation

        Returns:
            AssembledMessages; extra_tokens is 0 when the extra context
            was absent or dropped
        """
        assembled = AssembledMessages()
        assembled.messages.append(
            ChatMessage(role=self.role, content=self.build_context(chunks, query))
        )

        if not extra_context:
            return assembled

        extra_tokens = self._count_tokens(extra_context)
        if extra_tokens <= remaining_budget:
            assembled.messages.insert(
                0,
                ChatMessage(
                    role=self.role,
                    content=extra_context,
                    metadata={"kind": "extra_context"},
                ),
            )
            assembled.extra_tokens = extra_tokens
        else:
            message = (
                f"extra context dropped: {extra_tokens} tokens exceed "
                f"remaining budget of {max(0, remaining_budget)}"
            )
            logger.warning(message)
            assembled.warnings.append(message)

        return assembled
