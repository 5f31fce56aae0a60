"""Result aggregation and the end-of-run summary."""

from typing import Optional, Sequence

from ..domain.models import ExecutionSummary, TaskResult
from ..infra.logger import log_error, log_info, log_success, log_warning, print_header


def format_duration(duration_seconds: int) -> str:
    """Render seconds as ``Xh Ym Zs``, ``Ym Zs`` or ``Zs``."""
    duration_seconds = max(0, int(duration_seconds))
    hours = duration_seconds // 3600
    minutes = (duration_seconds % 3600) // 60
    seconds = duration_seconds % 60

    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def summarize(
    results: Sequence[TaskResult],
    start_timestamp: str = "",
    end_timestamp: str = "",
    duration_seconds: Optional[int] = None,
    log_dir: Optional[str] = None,
) -> ExecutionSummary:
    """Count successes and failures; the run fails iff any task failed.

    Without an explicit duration, the span from the first start to the last
    finish across ``results`` is used.
    """
    successful = sum(1 for result in results if result.success)
    failed = len(results) - successful

    if duration_seconds is None:
        if results:
            duration_seconds = int(
                max(result.finished_at for result in results) - min(result.started_at for result in results)
            )
        else:
            duration_seconds = 0

    if results:
        start_timestamp = start_timestamp or min(result.start_timestamp for result in results)
        end_timestamp = end_timestamp or max(result.end_timestamp for result in results)

    return ExecutionSummary(
        successful=successful,
        failed=failed,
        total=len(results),
        start_timestamp=start_timestamp,
        end_timestamp=end_timestamp,
        duration_seconds=duration_seconds,
        log_dir=log_dir,
        results=list(results),
    )


def print_summary(summary: ExecutionSummary) -> None:
    """输出最终统计"""
    print_header("EXECUTION SUMMARY")
    for result in summary.results:
        pointer = f" - log: {result.log_path}" if result.log_path else ""
        line = f"{result.task_name} ({format_duration(result.duration_seconds)}){pointer}"
        if result.success:
            log_success(line)
        else:
            log_error(f"{line} - {result.error or 'failed'}")

    log_info(f"Started at:     {summary.start_timestamp}")
    log_info(f"Finished at:    {summary.end_timestamp}")
    log_info(f"Total duration: {format_duration(summary.duration_seconds)}")
    log_success(f"Successful:     {summary.successful}")
    if summary.failed > 0:
        log_error(f"Failed:         {summary.failed}")
    else:
        log_info(f"Failed:         {summary.failed}")
    log_info(f"Total tasks:    {summary.total}")

    if summary.failed > 0:
        if summary.log_dir:
            log_warning(f"Some tasks failed. Check logs in {summary.log_dir} for details.")
        else:
            log_warning("Some tasks failed. See output above for details.")
        log_error("Execution completed with failures.")
    else:
        log_success("All tasks completed successfully!")
