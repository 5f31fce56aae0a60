"""Domain models and task document rendering/parsing."""

from .models import (
    ExecutionSummary,
    Job,
    ProvisionResult,
    RepositoryState,
    TaskArtifact,
    TaskResult,
)
from .task_document import (
    TaskDocumentInfo,
    build_task_name,
    parse_task_document,
    render_task_document,
    sanitize_branch_name,
    strip_blank_lines,
    task_sort_key,
)

__all__ = [
    "Job",
    "RepositoryState",
    "ProvisionResult",
    "TaskArtifact",
    "TaskResult",
    "ExecutionSummary",
    "TaskDocumentInfo",
    "build_task_name",
    "parse_task_document",
    "render_task_document",
    "sanitize_branch_name",
    "strip_blank_lines",
    "task_sort_key",
]
