"""Exception taxonomy shared by the runner layers."""

from typing import Optional, Sequence


class AgentRunnerError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(AgentRunnerError):
    """Malformed target/task/guide input, conflicting flags or invalid config values.

    Raised before any provisioning or execution starts and aborts the run.
    """


class AuthError(AgentRunnerError):
    """The GitHub CLI could not resolve the current user."""


class WorktreeError(AgentRunnerError):
    """Branch could not be resolved or ``git worktree add`` failed."""


class TaskExecutionError(AgentRunnerError):
    """The agent process could not be started for a task."""


class CommandError(AgentRunnerError):
    """A subprocess exited non-zero (or could not be started)."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        reason: Optional[str] = None,
    ):
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.reason = reason
        detail = reason or (stderr.strip().splitlines()[-1] if stderr.strip() else "")
        message = f"command failed ({returncode}): {' '.join(self.argv)}"
        if detail:
            message += f" - {detail}"
        super().__init__(message)
