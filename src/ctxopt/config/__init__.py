"""Configuration for ctxopt."""

from ctxopt.config.loader import load_config
from ctxopt.config.schema import (
    CtxoptConfig,
    HybridConfig,
    LoggingConfig,
    OptimizerConfig,
    SourcesConfig,
)

__all__ = [
    "CtxoptConfig",
    "HybridConfig",
    "LoggingConfig",
    "OptimizerConfig",
    "SourcesConfig",
    "load_config",
]
