# 任务执行模块：对每个任务文档调用 AI agent CLI
#
# 主要功能：
#   - run_task()：在任务的工作目录中运行 agent，任务文档通过 stdin 传入
#   - execute_sequential()：按任务名排序逐个执行
#   - execute_parallel()：按仓库分组，最多 max_jobs 个分组并行，组内串行
#   - execute_tasks()：执行阶段入口（清理日志目录、选择模式、汇总结果）
#
# 约束：
#   - 同一仓库的任务永远不会同时运行（共享同一个工作目录）
#   - 同时运行的 agent 进程数不超过 max_jobs
#   - agent 非零退出只记为失败结果，不会中断其他任务

import shutil
import subprocess
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..domain.models import ExecutionSummary, TaskArtifact, TaskResult
from ..domain.task_document import task_sort_key
from ..errors import CommandError, ConfigError, TaskExecutionError
from ..infra.logger import get_timestamp, log_error, log_info, log_success
from .agents import build_agent_command
from .aggregator import format_duration, summarize
from .materializer import load_task_artifacts
from .process_control import (
    is_shutdown_requested,
    request_shutdown,
    start_tracked_process,
    terminate_process,
    untrack_process,
)

# (command, task document text, working directory, log file or None, timeout) -> exit code
AgentRunner = Callable[[Sequence[str], str, Path, Optional[Path], Optional[float]], int]


def run_agent_process(
    command: Sequence[str],
    input_text: str,
    cwd: Path,
    log_file: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> int:
    """Spawn the agent with the task on stdin and wait for it.

    With ``log_file`` set, stdout and stderr go to that file; otherwise the
    agent writes straight to the console.
    """
    handle = None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handle = log_file.open("w", encoding="utf-8")

    try:
        process = start_tracked_process(
            list(command),
            cwd=str(cwd),
            stdin=subprocess.PIPE,
            stdout=handle,
            stderr=subprocess.STDOUT if handle is not None else None,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        try:
            process.communicate(input=input_text, timeout=timeout)
        except subprocess.TimeoutExpired:
            terminate_process(process)
            raise CommandError(command, -1, reason=f"timed out after {timeout:g}s")
        except BaseException:
            # untracked below, so the shutdown handler would never reach it
            terminate_process(process)
            raise
        finally:
            untrack_process(process)
    finally:
        if handle is not None:
            handle.close()

    if process.returncode != 0 and is_shutdown_requested():
        raise TaskExecutionError("cancelled (shutdown requested)")
    return process.returncode


def run_task(
    artifact: TaskArtifact,
    log_file: Optional[Path] = None,
    save_logs: bool = False,
    agent_command: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    runner: AgentRunner = run_agent_process,
) -> TaskResult:
    """Run one task and time it; never raises for task-level failures."""
    task_name = artifact.task_name
    command = list(agent_command or build_agent_command())
    start_timestamp = get_timestamp()
    started_at = time.monotonic()

    log_info(f"Processing: {task_name} (started at {start_timestamp})")

    success = False
    error: Optional[str] = None
    returncode: Optional[int] = None
    log_path = log_file if save_logs else None

    try:
        if artifact.error:
            raise TaskExecutionError(artifact.error)
        if is_shutdown_requested():
            raise TaskExecutionError("cancelled (shutdown requested)")
        if not artifact.workspace_path.is_dir():
            raise TaskExecutionError(f"Workspace directory does not exist: {artifact.workspace_path}")

        task_content = artifact.document_path.read_text(encoding="utf-8")
        if log_path is not None:
            log_info(f"Running {command[0]} in {artifact.workspace_path} (output saved to {log_path})")
        else:
            log_info(f"Running {command[0]} in {artifact.workspace_path}")

        returncode = runner(command, task_content, artifact.workspace_path, log_path, timeout)
        success = returncode == 0
        if not success:
            error = f"agent exited with code {returncode}"
    except (TaskExecutionError, CommandError, OSError) as exc:
        error = str(exc)

    finished_at = time.monotonic()
    end_timestamp = get_timestamp()
    duration = int(finished_at - started_at)

    message = f"{task_name} finished at {end_timestamp} ({format_duration(duration)})"
    if log_path is not None:
        message += f" - log: {log_path}"
    if success:
        log_success(f"Completed: {message}")
    else:
        log_error(f"Failed: {message} - {error}")

    return TaskResult(
        task_name=task_name,
        repo=artifact.repo,
        success=success,
        start_timestamp=start_timestamp,
        end_timestamp=end_timestamp,
        duration_seconds=duration,
        started_at=started_at,
        finished_at=finished_at,
        log_path=str(log_path) if log_path is not None else None,
        error=error,
        returncode=returncode,
    )


def _log_file_for(log_dir: Path, artifact: TaskArtifact) -> Path:
    return Path(log_dir) / f"{artifact.task_name}.log"


def execute_sequential(
    artifacts: Sequence[TaskArtifact],
    log_dir: Path,
    save_logs: bool = False,
    agent_command: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    runner: AgentRunner = run_agent_process,
) -> List[TaskResult]:
    """Run tasks one at a time, ordered by task name."""
    log_info("Running in sequential mode")
    results: List[TaskResult] = []
    for artifact in sorted(artifacts, key=lambda item: task_sort_key(item.task_name)):
        results.append(
            run_task(
                artifact,
                _log_file_for(log_dir, artifact),
                save_logs,
                agent_command,
                timeout,
                runner,
            )
        )
    return results


def group_artifacts_by_repo(artifacts: Sequence[TaskArtifact]) -> "OrderedDict[str, List[TaskArtifact]]":
    """Group by repository name; groups and their members keep task-name order."""
    groups: "OrderedDict[str, List[TaskArtifact]]" = OrderedDict()
    for artifact in sorted(artifacts, key=lambda item: task_sort_key(item.task_name)):
        groups.setdefault(artifact.repo, []).append(artifact)
    return groups


def _run_group(
    repo: str,
    artifacts: Sequence[TaskArtifact],
    log_dir: Path,
    agent_command: Optional[Sequence[str]],
    timeout: Optional[float],
    runner: AgentRunner,
) -> List[TaskResult]:
    log_info(f"Starting repository group: {repo} ({len(artifacts)} tasks)")
    results = [
        run_task(artifact, _log_file_for(log_dir, artifact), True, agent_command, timeout, runner)
        for artifact in artifacts
    ]
    log_info(f"Repository group completed: {repo}")
    return results


def _group_failure(artifacts: Sequence[TaskArtifact], log_dir: Path, error: str) -> List[TaskResult]:
    timestamp = get_timestamp()
    now = time.monotonic()
    return [
        TaskResult(
            task_name=artifact.task_name,
            repo=artifact.repo,
            success=False,
            start_timestamp=timestamp,
            end_timestamp=timestamp,
            duration_seconds=0,
            started_at=now,
            finished_at=now,
            log_path=str(_log_file_for(log_dir, artifact)),
            error=error,
        )
        for artifact in artifacts
    ]


def execute_parallel(
    artifacts: Sequence[TaskArtifact],
    log_dir: Path,
    max_jobs: int = 4,
    agent_command: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    runner: AgentRunner = run_agent_process,
) -> List[TaskResult]:
    """Run repository groups concurrently (at most ``max_jobs``), tasks inside a group in order.

    Logs are always saved in this mode.
    """
    if max_jobs < 1:
        raise ConfigError(f"--max-jobs must be a positive integer (got: {max_jobs})")

    groups = group_artifacts_by_repo(artifacts)
    log_info(f"Running in parallel mode (max {max_jobs} concurrent repository groups)")
    log_info(f"Found {len(groups)} repository groups to process")

    results_by_repo: Dict[str, List[TaskResult]] = {}
    with ThreadPoolExecutor(max_workers=max_jobs) as executor:
        future_to_repo = {
            executor.submit(_run_group, repo, members, log_dir, agent_command, timeout, runner): repo
            for repo, members in groups.items()
        }
        try:
            for future in as_completed(future_to_repo):
                repo = future_to_repo[future]
                try:
                    results_by_repo[repo] = future.result()
                except Exception as exc:
                    log_error(f"Repository group {repo} crashed: {exc}")
                    results_by_repo[repo] = _group_failure(groups[repo], log_dir, str(exc))
        except KeyboardInterrupt:
            # lanes stop picking up new tasks once the flag is set
            request_shutdown()
            raise

    log_info("All repository groups completed")
    return [result for repo in groups for result in results_by_repo.get(repo, [])]


def reset_log_dir(log_dir: Path) -> None:
    log_info(f"Cleaning up existing logs directory: {log_dir}")
    if log_dir.exists():
        shutil.rmtree(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)


def execute_tasks(
    output_dir: Path,
    log_dir: Path,
    config: Mapping[str, Any],
    artifacts: Optional[Sequence[TaskArtifact]] = None,
    runner: AgentRunner = run_agent_process,
) -> ExecutionSummary:
    """Execution phase entry point.

    Uses ``artifacts`` from the generation phase when given, otherwise
    reloads them from ``output_dir`` (``--run-only``).
    """
    if artifacts is None:
        artifacts = load_task_artifacts(output_dir)
    if not artifacts:
        raise ConfigError(f"No task files found in {output_dir}. Please ensure task generation was successful")

    parallel = bool(config.get("parallel"))
    save_logs = bool(config.get("saveLogs")) or parallel
    agent_command = build_agent_command(config.get("agent", "claude"))
    timeout = config.get("taskTimeout")

    if save_logs:
        reset_log_dir(Path(log_dir))
        log_info(f"Logs will be saved to: {log_dir}")
    else:
        log_info("Output will be printed directly (no logs saved)")

    log_info(f"Found {len(artifacts)} task files to process")

    start_timestamp = get_timestamp()
    started_at = time.monotonic()

    if parallel:
        results = execute_parallel(
            artifacts,
            Path(log_dir),
            int(config.get("maxJobs", 4)),
            agent_command,
            timeout,
            runner,
        )
    else:
        results = execute_sequential(artifacts, Path(log_dir), save_logs, agent_command, timeout, runner)

    return summarize(
        results,
        start_timestamp=start_timestamp,
        end_timestamp=get_timestamp(),
        duration_seconds=int(time.monotonic() - started_at),
        log_dir=str(log_dir) if save_logs else None,
    )
