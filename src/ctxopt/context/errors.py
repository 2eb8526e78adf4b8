"""Exceptions raised by the context optimizer."""

from __future__ import annotations


class OptimizerError(Exception):
    """Base class for optimizer configuration errors."""


class UnknownStrategyError(OptimizerError, ValueError):
    """Raised when a strategy name is not registered."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        valid = ", ".join(sorted(available))
        super().__init__(f"unknown strategy '{name}'. Valid: {valid}")
