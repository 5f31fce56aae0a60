from pathlib import Path
import sys

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _clear_shutdown_flag():
    from multi_repo_agent.core.process_control import clear_shutdown_request

    clear_shutdown_request()
    yield
    clear_shutdown_request()


@pytest.fixture
def make_artifact(tmp_path):
    """Build a TaskArtifact with a real task document and workspace directory."""
    from multi_repo_agent.domain.models import Job, TaskArtifact
    from multi_repo_agent.domain.task_document import build_task_name, render_task_document

    def _make(counter, repo, branch="main", org="acme", body="do the thing"):
        job = Job(org=org, repo=repo, branch=branch)
        workspace = tmp_path / "workspace" / repo
        workspace.mkdir(parents=True, exist_ok=True)
        task_name = build_task_name(counter, repo, branch)
        document = tmp_path / "tasks" / f"{task_name}.md"
        document.parent.mkdir(parents=True, exist_ok=True)
        document.write_text(render_task_document(job, workspace, "guide", body), encoding="utf-8")
        return TaskArtifact(task_name=task_name, job=job, document_path=document, workspace_path=workspace)

    return _make
