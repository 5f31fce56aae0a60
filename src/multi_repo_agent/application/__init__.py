"""Application services orchestrating domain and core capabilities."""

from .runner import run_pipeline

__all__ = [
    "run_pipeline",
]
