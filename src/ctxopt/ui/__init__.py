"""Console rendering helpers."""
