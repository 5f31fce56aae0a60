"""Task document rendering and parsing in the domain layer."""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from .models import Job

FIELD_PATTERN = re.compile(r"^- \*\*(.+?)\*\*: (.*)$", re.MULTILINE)

FIELD_ORGANIZATION = "Organization"
FIELD_REPOSITORY = "Repository"
FIELD_BRANCH = "Branch"
FIELD_WORKSPACE_PATH = "Workspace Path"
FIELD_TASK_DIRECTORY = "Task Directory"


@dataclass(frozen=True)
class TaskDocumentInfo:
    """Repository Info fields read back from a task document."""

    org: str
    repo: str
    branch: str
    workspace_path: str
    task_dir: str = ""

    def to_job(self) -> Job:
        return Job(org=self.org, repo=self.repo, branch=self.branch)


def strip_blank_lines(text: str) -> str:
    """Drop whitespace-only lines, keeping everything else verbatim."""
    return "\n".join(line for line in text.splitlines() if line.strip())


def sanitize_branch_name(branch: str) -> str:
    """Make a branch name safe for use in file and directory names."""
    return branch.replace("/", "_").replace("\\", "_")


def build_task_name(counter: int, repo: str, branch: str) -> str:
    return f"{counter:03d}_{repo}_{sanitize_branch_name(branch)}"


def task_sort_key(task_name: str) -> Tuple[int, str]:
    """Order task names by their numeric counter, so ``1000_*`` follows ``999_*``."""
    prefix, _, _ = task_name.partition("_")
    if prefix.isdigit():
        return int(prefix), task_name
    return -1, task_name


def render_task_document(
    job: Job,
    workspace_path: Path,
    guide_text: str,
    task_text: str,
    task_dir: Optional[Path] = None,
) -> str:
    """Render the task document consumed by the agent CLI."""
    source = f"{job.org}/{job.repo}" if job.org else job.repo
    lines = [
        f"# Task: {job.repo}/{job.branch} (from {source})",
        "",
        "## Repository Info",
        f"- **{FIELD_ORGANIZATION}**: {job.org}",
        f"- **{FIELD_REPOSITORY}**: {job.repo}",
        f"- **{FIELD_BRANCH}**: {job.branch}",
        f"- **{FIELD_WORKSPACE_PATH}**: {workspace_path}",
    ]
    if task_dir is not None:
        lines.append(f"- **{FIELD_TASK_DIRECTORY}**: {task_dir}")
    lines += [
        "",
        "## Guide",
        "<guide>",
        guide_text,
        "</guide>",
        "",
        "## Description",
        "<task>",
        task_text,
        "</task>",
        "",
    ]
    return "\n".join(lines)


def parse_task_fields(content: str) -> Dict[str, str]:
    """Collect ``- **Field**: value`` lines; the first occurrence wins.

    Only the Repository Info block is scanned so guide or task text that
    happens to use the same bullet style cannot shadow the real fields.
    """
    header, _, _ = content.partition("\n## Guide")
    fields: Dict[str, str] = {}
    for match in FIELD_PATTERN.finditer(header):
        fields.setdefault(match.group(1).strip(), match.group(2).strip())
    return fields


def parse_task_document(content: str) -> TaskDocumentInfo:
    """Parse the Repository Info block back out of a task document."""
    fields = parse_task_fields(content)
    workspace_path = fields.get(FIELD_WORKSPACE_PATH, "")
    if not workspace_path:
        raise ValueError("Could not extract workspace path from task file")

    return TaskDocumentInfo(
        org=fields.get(FIELD_ORGANIZATION, ""),
        repo=fields.get(FIELD_REPOSITORY, ""),
        branch=fields.get(FIELD_BRANCH, ""),
        workspace_path=workspace_path,
        task_dir=fields.get(FIELD_TASK_DIRECTORY, ""),
    )
