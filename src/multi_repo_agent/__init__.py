"""Batch runner that forks/clones target repositories and hands each one a task for an AI coding agent."""

__version__ = "1.0.0"
