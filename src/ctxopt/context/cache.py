"""In-process memoization of optimization results.

Entries live until an explicit clear; there is no TTL and nothing is
written to disk. Keys come from a canonical request signature so field
and list ordering never change the key.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable, Optional

from ctxopt.models.context import OptimizationResult, OptimizeRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestSignature:
    """Canonical, order-independent description of a request.

    Unit identity is by path only; content edits under an unchanged path
    are not detected.
    """

    query: str
    unit_paths: tuple[str, ...]
    include_units: tuple[str, ...]
    exclude_units: tuple[str, ...]
    preserve_units: tuple[str, ...]
    extra_context: str
    target_tokens: Optional[int]

    @classmethod
    def from_request(cls, request: OptimizeRequest) -> "RequestSignature":
        return cls(
            query=request.query or "",
            unit_paths=tuple(sorted(unit.path for unit in request.units)),
            include_units=tuple(sorted(set(request.include_units))),
            exclude_units=tuple(sorted(set(request.exclude_units))),
            preserve_units=tuple(sorted(set(request.preserve_units))),
            extra_context=request.extra_context or "",
            target_tokens=request.target_tokens,
        )

    @property
    def key(self) -> str:
        """Structural hash of the signature."""
        payload = json.dumps(asdict(self), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResultCache:
    """Keyed store of complete optimization results.

    Concurrent computations for the same key are collapsed: the first
    caller computes while later callers wait and receive the same result
    instance.
    """

    def __init__(self) -> None:
        self._entries: dict[str, OptimizationResult] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[OptimizationResult]:
        return self._entries.get(key)

    def set(self, key: str, result: OptimizationResult) -> None:
        self._entries[key] = result

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[OptimizationResult]],
    ) -> OptimizationResult:
        """Return the cached result for key, computing it at most once."""
        cached = self._entries.get(key)
        if cached is not None:
            self._hits += 1
            logger.debug(f"Cache hit for {key[:12]}")
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._hits += 1
                logger.debug(f"Cache hit for {key[:12]} after waiting")
                return cached

            self._misses += 1
            result = await compute()
            self._entries[key] = result

        return result

    def clear(self) -> None:
        """Drop every entry. Always succeeds, safe to repeat."""
        self._entries.clear()
        self._locks.clear()
        logger.debug("Result cache cleared")

    def stats(self) -> dict[str, int]:
        return {"hits": self._hits, "misses": self._misses, "size": len(self._entries)}
