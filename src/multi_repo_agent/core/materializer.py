# 任务生成模块：为每个 (org, repo, branch) 生成任务文档（可选 git worktree）
#
# 主要功能：
#   - TaskMaterializer.materialize()：渲染单个任务文档
#   - generate_tasks()：解析目标 → 准备仓库 → 逐个生成任务
#   - load_task_artifacts()：--run-only 时从 tasks/ 目录读回任务
#
# 命名规则：
#   - NNN_<repo>_<branch>，NNN 为三位序号，只在生成成功后递增
#   - 分支名中的 / 替换为 _
#
# 两种模式（每次运行只用一种）：
#   - 共享克隆：tasks/NNN_repo_branch.md，工作目录为 workspace/<repo>
#   - worktree：tasks/NNN_repo_branch/task.md，工作目录为 tasks/NNN_repo_branch/<repo>

import shutil
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from ..domain.models import Job, TaskArtifact
from ..domain.task_document import (
    build_task_name,
    parse_task_document,
    render_task_document,
    strip_blank_lines,
    task_sort_key,
)
from ..errors import CommandError, ConfigError, WorktreeError
from ..infra.logger import log_error, log_info, log_success, log_warning
from .config import BundlePaths, check_generation_inputs
from .git import GitClient
from .process_control import is_shutdown_requested
from .provisioner import RepositoryProvisioner, RepositoryStore
from .targets import parse_target_file

TASK_DOCUMENT_NAME = "task.md"
REMOTE_RESOLUTION_ORDER = ("upstream", "origin")


class TaskMaterializer:
    """Write numbered task documents, optionally backed by a git worktree."""

    def __init__(
        self,
        output_dir: Path,
        workspace_root: Path,
        use_worktrees: bool = False,
        git: Optional[GitClient] = None,
        shallow: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.workspace_root = Path(workspace_root)
        self.use_worktrees = use_worktrees
        self.git = git or GitClient()
        self.shallow = shallow
        self._counter = 1

    @property
    def next_counter(self) -> int:
        return self._counter

    def resolve_branch_ref(self, repo_dir: Path, branch: str) -> str:
        """Resolve ``branch`` locally, then on upstream, then on origin.

        Remote branches that are not present yet (shallow clones only carry
        the default branch) are fetched once before giving up.
        """
        if self.git.ref_exists(repo_dir, branch):
            return branch

        for remote in REMOTE_RESOLUTION_ORDER:
            ref = f"{remote}/{branch}"
            if self.git.ref_exists(repo_dir, ref):
                return ref
            log_info(f"Branch {branch} not found as {ref}, trying next location...")

        depth = 1 if self.shallow else None
        for remote in REMOTE_RESOLUTION_ORDER:
            ref = f"{remote}/{branch}"
            if self.git.fetch_branch(repo_dir, remote, branch, depth=depth) and self.git.ref_exists(repo_dir, ref):
                return ref

        raise WorktreeError(f"Branch {branch} not found locally, on upstream or on origin")

    def _create_worktree(self, job: Job, task_dir: Path) -> Path:
        repo_dir = self.workspace_root / job.repo
        worktree_path = task_dir / job.repo
        ref = self.resolve_branch_ref(repo_dir, job.branch)

        log_info(f"Creating worktree for {job.label} from {ref}")
        task_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.git.worktree_add(repo_dir, worktree_path, ref)
        except CommandError as exc:
            shutil.rmtree(task_dir, ignore_errors=True)
            raise WorktreeError(str(exc)) from exc
        return worktree_path

    def materialize(
        self,
        job: Job,
        guide_text: str,
        task_text: str,
        workspace_root: Optional[Path] = None,
    ) -> Optional[TaskArtifact]:
        """Render one task; returns None (and logs) when the worktree cannot be made."""
        if workspace_root is not None:
            self.workspace_root = Path(workspace_root)

        task_name = build_task_name(self._counter, job.repo, job.branch)
        task_dir: Optional[Path] = None

        if self.use_worktrees:
            task_dir = (self.output_dir / task_name).resolve()
            try:
                workspace_path = self._create_worktree(job, task_dir)
            except WorktreeError as exc:
                log_error(f"Failed to create worktree for {job.label}: {exc}")
                return None
            document_path = task_dir / TASK_DOCUMENT_NAME
        else:
            workspace_path = (self.workspace_root / job.repo).resolve()
            document_path = self.output_dir / f"{task_name}.md"

        content = render_task_document(job, workspace_path, guide_text, task_text, task_dir=task_dir)
        try:
            document_path.parent.mkdir(parents=True, exist_ok=True)
            document_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            log_error(f"Failed to write task file {document_path}: {exc}")
            return None

        self._counter += 1
        log_success(f"Created: {document_path}")
        return TaskArtifact(
            task_name=task_name,
            job=job,
            document_path=document_path,
            workspace_path=workspace_path,
            task_dir=task_dir,
        )


def read_input_text(path: Path) -> str:
    try:
        return strip_blank_lines(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc


def prune_worktrees(repos: Sequence[str], workspace_root: Path, git: GitClient) -> None:
    """Drop stale worktree metadata left by previous runs."""
    for repo in dict.fromkeys(repos):
        repo_dir = workspace_root / repo
        if not repo_dir.is_dir():
            continue
        try:
            git.worktree_prune(repo_dir)
        except CommandError as exc:
            log_warning(f"git worktree prune failed for {repo}: {exc}")


def reset_output_dir(output_dir: Path) -> None:
    log_info(f"Cleaning up existing tasks directory: {output_dir}")
    if output_dir.exists():
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)


def generate_tasks(
    paths: BundlePaths,
    config: Mapping[str, Any],
    provisioner: Optional[RepositoryProvisioner] = None,
    git: Optional[GitClient] = None,
) -> List[TaskArtifact]:
    """Generation phase: parse targets, provision repos, write task documents."""
    check_generation_inputs(paths)
    task_text = read_input_text(paths.task_file)
    guide_text = read_input_text(paths.guide_file)

    log_info(f"Parsing {paths.target_file}...")
    jobs = parse_target_file(paths.target_file)
    log_info(f"Found {len(jobs)} target combinations")

    git = git or GitClient()
    use_worktrees = bool(config.get("useWorktrees"))
    shallow = bool(config.get("shallowClone", True))

    reset_output_dir(paths.output_dir)
    paths.workspace_dir.mkdir(parents=True, exist_ok=True)
    if use_worktrees:
        log_info("Cleaning up any stale worktrees...")
        prune_worktrees([job.repo for job in jobs], paths.workspace_dir, git)

    store = RepositoryStore(
        provisioner or RepositoryProvisioner(paths.workspace_dir, shallow=shallow, git=git)
    )
    materializer = TaskMaterializer(
        paths.output_dir,
        paths.workspace_dir,
        use_worktrees=use_worktrees,
        git=git,
        shallow=shallow,
    )

    artifacts: List[TaskArtifact] = []
    for job in jobs:
        if is_shutdown_requested():
            log_warning("Shutdown requested, stopping task generation")
            break

        log_info(f"Setting up repository: {job.org}/{job.repo}")
        result = store.ensure(job.org, job.repo)
        if not result.success:
            log_warning(f"Failed to set up repository {job.org}/{job.repo}, skipping {job.label}")
            continue

        artifact = materializer.materialize(job, guide_text, task_text)
        if artifact is None:
            log_warning(f"Skipping {job.label}")
            continue
        artifacts.append(artifact)

    return artifacts


def _artifact_from_document(task_name: str, document_path: Path, task_dir: Optional[Path]) -> TaskArtifact:
    try:
        info = parse_task_document(document_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return TaskArtifact(
            task_name=task_name,
            job=Job(org="", repo=task_name, branch=""),
            document_path=document_path,
            workspace_path=document_path.parent,
            task_dir=task_dir,
            error=str(exc),
        )

    workspace_path = Path(info.workspace_path)
    job = info.to_job()
    if not job.repo:
        # older documents without a Repository field: the workspace dir is the repo
        job = Job(org=job.org, repo=workspace_path.name, branch=job.branch)
    return TaskArtifact(
        task_name=task_name,
        job=job,
        document_path=document_path,
        workspace_path=workspace_path,
        task_dir=Path(info.task_dir) if info.task_dir else task_dir,
    )


def load_task_artifacts(output_dir: Path) -> List[TaskArtifact]:
    """Discover ``NNN_*.md`` files and ``NNN_*/task.md`` directories, ordered by task counter."""
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        raise ConfigError(f"{output_dir} directory not found. Please ensure task generation was successful")

    artifacts: List[TaskArtifact] = []
    entries = sorted(output_dir.iterdir(), key=lambda item: task_sort_key(item.stem if item.is_file() else item.name))
    for entry in entries:
        if entry.is_file() and entry.suffix == ".md":
            artifacts.append(_artifact_from_document(entry.stem, entry, None))
        elif entry.is_dir() and (entry / TASK_DOCUMENT_NAME).is_file():
            artifacts.append(_artifact_from_document(entry.name, entry / TASK_DOCUMENT_NAME, entry))

    if not artifacts:
        raise ConfigError(f"No task files found in {output_dir}. Please ensure task generation was successful")
    return artifacts
