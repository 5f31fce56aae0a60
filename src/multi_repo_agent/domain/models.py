"""Domain data structures."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

UPSTREAM_URL_TEMPLATE = "https://github.com/{org}/{repo}.git"


@dataclass(frozen=True)
class Job:
    """One (org, repo, branch) target expanded from target.yml."""

    org: str
    repo: str
    branch: str

    @property
    def label(self) -> str:
        if not self.org:
            return f"{self.repo}@{self.branch}"
        return f"{self.org}/{self.repo}@{self.branch}"


@dataclass(frozen=True)
class RepositoryState:
    """Local clone state of one repository under the workspace directory."""

    repo: str
    path: Path
    exists: bool
    origin_url: str = ""
    upstream_url: str = ""

    def upstream_matches(self, org: str) -> bool:
        return self.upstream_url == UPSTREAM_URL_TEMPLATE.format(org=org, repo=self.repo)


@dataclass(frozen=True)
class ProvisionResult:
    """Outcome of ensuring one repository; ``step`` names the failed step."""

    org: str
    repo: str
    success: bool
    path: Optional[Path] = None
    step: str = ""
    error: str = ""
    created: bool = False


@dataclass(frozen=True)
class TaskArtifact:
    """A rendered task document ready to be handed to the agent CLI.

    The job travels with the artifact so grouping never depends on parsing
    the task name back apart. ``error`` is set when a task file found on
    disk could not be parsed; such a task fails without running.
    """

    task_name: str
    job: Job
    document_path: Path
    workspace_path: Path
    task_dir: Optional[Path] = None
    error: Optional[str] = None

    @property
    def repo(self) -> str:
        return self.job.repo


@dataclass(frozen=True)
class TaskResult:
    """Outcome of one agent invocation."""

    task_name: str
    repo: str
    success: bool
    start_timestamp: str
    end_timestamp: str
    duration_seconds: int
    started_at: float = 0.0
    finished_at: float = 0.0
    log_path: Optional[str] = None
    error: Optional[str] = None
    returncode: Optional[int] = None


@dataclass(frozen=True)
class ExecutionSummary:
    successful: int
    failed: int
    total: int
    start_timestamp: str
    end_timestamp: str
    duration_seconds: int
    log_dir: Optional[str] = None
    results: List[TaskResult] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0
