"""Command-line interface for ctxopt."""
