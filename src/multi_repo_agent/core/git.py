"""Thin argv-list wrappers around ``git`` and the GitHub CLI ``gh``."""

from pathlib import Path
from typing import Callable, List, Optional, Union

from ..errors import AuthError, CommandError
from .process_control import CommandResult, run_command

PathLike = Union[str, Path]
Runner = Callable[..., CommandResult]

GIT_TIMEOUT = 300


class GitClient:
    """Local git operations used by provisioning and worktree creation."""

    def __init__(self, runner: Runner = run_command, timeout: Optional[float] = GIT_TIMEOUT):
        self._run = runner
        self._timeout = timeout

    def _git(self, repo_dir: PathLike, *args: str, check: bool = True) -> CommandResult:
        return self._run(["git", "-C", str(repo_dir), *args], timeout=self._timeout, check=check)

    def get_remote_url(self, repo_dir: PathLike, name: str) -> str:
        """Return the remote URL, or an empty string when the remote is absent."""
        result = self._git(repo_dir, "remote", "get-url", name, check=False)
        if not result.ok:
            return ""
        return result.stdout.strip()

    def add_remote(self, repo_dir: PathLike, name: str, url: str) -> None:
        self._git(repo_dir, "remote", "add", name, url)

    def set_remote_url(self, repo_dir: PathLike, name: str, url: str) -> None:
        self._git(repo_dir, "remote", "set-url", name, url)

    def ref_exists(self, repo_dir: PathLike, ref: str) -> bool:
        result = self._git(repo_dir, "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        return result.ok

    def fetch_branch(self, repo_dir: PathLike, remote: str, branch: str, depth: Optional[int] = None) -> bool:
        """Fetch one branch into ``refs/remotes/<remote>/<branch>``; False if it is missing."""
        args = ["fetch", "--quiet"]
        if depth:
            args.append(f"--depth={depth}")
        args += [remote, f"+refs/heads/{branch}:refs/remotes/{remote}/{branch}"]
        return self._git(repo_dir, *args, check=False).ok

    def worktree_add(self, repo_dir: PathLike, worktree_path: PathLike, ref: str) -> None:
        self._git(repo_dir, "worktree", "add", "--detach", str(worktree_path), ref)

    def worktree_prune(self, repo_dir: PathLike) -> None:
        self._git(repo_dir, "worktree", "prune")


class GitHubClient:
    """Fork/clone operations through the authenticated ``gh`` CLI."""

    def __init__(self, runner: Runner = run_command, timeout: Optional[float] = GIT_TIMEOUT):
        self._run = runner
        self._timeout = timeout

    def current_user(self) -> str:
        try:
            result = self._run(["gh", "api", "user", "--jq", ".login"], timeout=self._timeout, check=True)
        except CommandError as exc:
            raise AuthError(
                f"Could not get current GitHub user. Please check gh authentication. ({exc})"
            ) from exc

        login = result.stdout.strip()
        if not login:
            raise AuthError("Could not get current GitHub user. Please check gh authentication.")
        return login

    def list_forks(self, user: str) -> List[str]:
        result = self._run(
            ["gh", "repo", "list", user, "--fork", "--limit", "1000", "--json", "name", "--jq", ".[].name"],
            timeout=self._timeout,
            check=True,
        )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def fork(self, org: str, repo: str) -> None:
        self._run(["gh", "repo", "fork", f"{org}/{repo}", "--clone=false"], timeout=self._timeout, check=True)

    def clone(self, full_name: str, target_dir: PathLike, shallow: bool = True) -> None:
        command = ["gh", "repo", "clone", full_name, str(target_dir)]
        if shallow:
            command += ["--", "--depth=1"]
        # clone timing depends on repo size, so no timeout here
        self._run(command, timeout=None, check=True)
