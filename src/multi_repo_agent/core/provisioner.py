# 仓库准备模块：确保 workspace/<repo> 是用户 fork 的克隆，并正确配置 upstream
#
# 主要功能：
#   - RepositoryProvisioner.ensure_repository()：fork → clone → upstream
#   - reconcile_upstream()：已存在的仓库也要校验 upstream 指向当前 org
#   - RepositoryStore：按仓库名缓存本次运行的准备结果
#
# 特性：
#   - 幂等：重复执行只会重新校验 upstream URL，不会产生重复 remote
#   - 任一步骤失败返回带步骤名的失败结果，调用方跳过该任务继续处理其他任务
#   - 克隆失败时清理不完整的目录，避免下次运行被误判为已准备好

import shutil
from pathlib import Path
from typing import Dict, Optional, Union

from ..domain.models import UPSTREAM_URL_TEMPLATE, ProvisionResult, RepositoryState
from ..errors import AuthError, CommandError
from ..infra.logger import log_error, log_info, log_success, log_warning
from .git import GitClient, GitHubClient

UPSTREAM_REMOTE = "upstream"
ORIGIN_REMOTE = "origin"

STEP_UPSTREAM = "upstream"
STEP_AUTH = "auth"
STEP_FORK = "fork"
STEP_CLONE = "clone"


class RepositoryProvisioner:
    """Ensure fork clones exist under ``workspace_root`` with upstream wiring."""

    def __init__(
        self,
        workspace_root: Union[str, Path],
        shallow: bool = True,
        git: Optional[GitClient] = None,
        github: Optional[GitHubClient] = None,
    ):
        self.workspace_root = Path(workspace_root)
        self.shallow = shallow
        self.git = git or GitClient()
        self.github = github or GitHubClient()
        self._user: Optional[str] = None

    def repo_dir(self, repo: str) -> Path:
        return self.workspace_root / repo

    def resolve_user(self) -> str:
        """Return the gh login; only a successful lookup is cached."""
        if self._user is None:
            self._user = self.github.current_user()
        return self._user

    def read_repository_state(self, repo: str) -> RepositoryState:
        repo_dir = self.repo_dir(repo)
        if not repo_dir.is_dir():
            return RepositoryState(repo=repo, path=repo_dir, exists=False)
        return RepositoryState(
            repo=repo,
            path=repo_dir,
            exists=True,
            origin_url=self.git.get_remote_url(repo_dir, ORIGIN_REMOTE),
            upstream_url=self.git.get_remote_url(repo_dir, UPSTREAM_REMOTE),
        )

    def reconcile_upstream(self, repo_dir: Path, org: str, repo: str) -> bool:
        """Point ``upstream`` at ``org/repo``; return True when the remote changed."""
        expected = UPSTREAM_URL_TEMPLATE.format(org=org, repo=repo)
        current = self.git.get_remote_url(repo_dir, UPSTREAM_REMOTE)

        if current == expected:
            log_info(f"Upstream remote already correct: {expected}")
            return False

        if current:
            log_info(f"Updating upstream from {current} to {expected}")
            self.git.set_remote_url(repo_dir, UPSTREAM_REMOTE, expected)
        else:
            log_info(f"Adding upstream remote {expected}")
            self.git.add_remote(repo_dir, UPSTREAM_REMOTE, expected)
        return True

    def ensure_repository(self, org: str, repo: str) -> ProvisionResult:
        repo_dir = self.repo_dir(repo)

        if not org:
            return self._ensure_without_org(repo, repo_dir)

        if repo_dir.is_dir():
            log_info(f"Repository {repo} already exists in workspace, verifying upstream for {org}/{repo}")
            try:
                self.reconcile_upstream(repo_dir, org, repo)
            except CommandError as exc:
                return self._failure(org, repo, STEP_UPSTREAM, str(exc))
            return ProvisionResult(org=org, repo=repo, success=True, path=repo_dir)

        log_info(f"Repository {repo} not found in workspace, checking for fork...")

        try:
            user = self.resolve_user()
        except AuthError as exc:
            return self._failure(org, repo, STEP_AUTH, str(exc))

        try:
            forks = self.github.list_forks(user)
        except CommandError as exc:
            # a failed listing is treated as "no fork"; gh repo fork is a no-op if one exists
            log_warning(f"Could not list forks of {user}: {exc}")
            forks = []

        if repo in forks:
            log_info(f"Fork {user}/{repo} already exists")
        else:
            log_info(f"Creating fork of {org}/{repo}...")
            try:
                self.github.fork(org, repo)
            except CommandError as exc:
                return self._failure(org, repo, STEP_FORK, str(exc))
            log_success(f"Forked {org}/{repo}")

        mode = "shallow clone" if self.shallow else "full clone"
        log_info(f"Cloning {user}/{repo} to workspace ({mode})...")
        try:
            self.workspace_root.mkdir(parents=True, exist_ok=True)
            self.github.clone(f"{user}/{repo}", repo_dir, shallow=self.shallow)
        except (CommandError, OSError) as exc:
            _cleanup_failed_directory(repo_dir)
            return self._failure(org, repo, STEP_CLONE, str(exc))

        try:
            self.reconcile_upstream(repo_dir, org, repo)
        except CommandError as exc:
            return self._failure(org, repo, STEP_UPSTREAM, str(exc))

        log_success(f"Set up repository {repo} in workspace")
        return ProvisionResult(org=org, repo=repo, success=True, path=repo_dir, created=True)

    def _ensure_without_org(self, repo: str, repo_dir: Path) -> ProvisionResult:
        """Jobs from plain repo/branch targets have no org to fork or track."""
        if repo_dir.is_dir():
            log_warning(f"No org given for {repo}, using workspace/{repo} as is (upstream not verified)")
            return ProvisionResult(org="", repo=repo, success=True, path=repo_dir)
        return self._failure("", repo, STEP_FORK, "no org given, cannot fork; clone it into the workspace first")

    @staticmethod
    def _failure(org: str, repo: str, step: str, error: str) -> ProvisionResult:
        log_error(f"Provisioning {org}/{repo} failed at step '{step}': {error}")
        return ProvisionResult(org=org, repo=repo, success=False, step=step, error=error)


class RepositoryStore:
    """Per-run map from repo name to its provisioning result.

    Jobs sharing a repo provision it once; a job naming a different org for
    the same repo provisions again so ``upstream`` follows the newer org.
    Failures are not cached, so a later job may retry.
    """

    def __init__(self, provisioner: RepositoryProvisioner):
        self.provisioner = provisioner
        self._results: Dict[str, ProvisionResult] = {}

    def ensure(self, org: str, repo: str) -> ProvisionResult:
        cached = self._results.get(repo)
        if cached is not None and cached.org == org:
            return cached

        result = self.provisioner.ensure_repository(org, repo)
        if result.success:
            self._results[repo] = result
        else:
            self._results.pop(repo, None)
        return result

    def state(self, repo: str) -> RepositoryState:
        return self.provisioner.read_repository_state(repo)

    def __contains__(self, repo: str) -> bool:
        return repo in self._results

    def __len__(self) -> int:
        return len(self._results)


def ensure_repository(
    org: str,
    repo: str,
    workspace_root: Union[str, Path],
    shallow: bool = True,
    git: Optional[GitClient] = None,
    github: Optional[GitHubClient] = None,
) -> ProvisionResult:
    """One-shot helper around :class:`RepositoryProvisioner`."""
    return RepositoryProvisioner(workspace_root, shallow=shallow, git=git, github=github).ensure_repository(org, repo)


def _cleanup_failed_directory(target_path: Path) -> None:
    if not target_path.exists():
        return
    try:
        shutil.rmtree(target_path)
    except OSError as exc:
        log_warning(f"Failed to remove incomplete clone {target_path}: {exc}")
