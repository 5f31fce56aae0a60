# 命令行入口：解析参数并运行生成/执行流程
#
# 主要功能：
#   - parse_args()：解析命令行参数（未指定的参数为 None，交给配置文件层决定）
#   - cli_options_from_args()：转换为与 config.json 相同的键名
#   - main()：运行并返回退出码（0 全部成功，1 有失败或配置错误，130 被中断）

import argparse
import sys
from typing import Any, Dict, List, Optional

from .application.runner import run_pipeline
from .core.agents import AGENT_COMMANDS
from .core.process_control import request_shutdown
from .infra.logger import log_error, log_warning

EPILOG = """
Examples:
  %(prog)s --bundle bundles/upgrade-deps
  %(prog)s --bundle bundles/security-patch --parallel --max-jobs 8
  %(prog)s --bundle bundles/docs-sync --generate-only
  %(prog)s --bundle bundles/docs-sync --run-only --save-logs

Bundle layout:
  bundles/my-task/
    target.yml    repositories and branches (required)
    task.md       task description (required)
    GUIDE.md      bundle-specific workflow guide (optional)
    config.json   bundle-specific configuration (optional)

target.yml:
  target:
    - org: acme
      repos: [svc, api]
      branches: [main, release/1.0]

Priority: command line options > bundle config.json > root config.json > defaults
Parallel mode runs different repositories concurrently; tasks for the same
repository always run one after another.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """argparse parser that exits with status 1 like every other setup error."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        log_error(message)
        raise SystemExit(1)


def validate_positive_int(value: str) -> int:
    """验证参数为正整数且 >= 1"""
    try:
        num = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be an integer: {value}")
    if num < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return num


def validate_positive_float(value: str) -> float:
    try:
        num = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a number: {value}")
    if num <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return num


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="multi-repo-agent",
        description="Generate per-repository task files and run an AI coding agent on each of them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--bundle", metavar="PATH", help="bundle directory containing target.yml and task.md")
    parser.add_argument("--guide-file", metavar="FILE", help="guide file (default: GUIDE.md, or the bundle's GUIDE.md)")
    parser.add_argument("--generate-only", action="store_true", default=None, help="only generate task files")
    parser.add_argument("--run-only", action="store_true", default=None, help="only run existing task files")
    parser.add_argument("--save-logs", action="store_true", default=None, help="save agent output to logs/<task>.log")
    parser.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="run repository groups in parallel (enables --save-logs)",
    )
    parser.add_argument(
        "--max-jobs",
        type=validate_positive_int,
        metavar="NUM",
        help="maximum concurrent repository groups in parallel mode (default: 4)",
    )

    clone_group = parser.add_mutually_exclusive_group()
    clone_group.add_argument(
        "--shallow-clone",
        dest="shallow_clone",
        action="store_const",
        const=True,
        default=None,
        help="clone forks with --depth=1 (default)",
    )
    clone_group.add_argument(
        "--full-clone",
        dest="shallow_clone",
        action="store_const",
        const=False,
        help="clone forks with full history",
    )

    parser.add_argument(
        "--worktrees",
        action="store_true",
        default=None,
        help="give every task its own git worktree checked out at the target branch",
    )
    parser.add_argument("--agent", choices=sorted(AGENT_COMMANDS), help="agent CLI to run (default: claude)")
    parser.add_argument(
        "--task-timeout",
        type=validate_positive_float,
        metavar="SECONDS",
        help="kill an agent that runs longer than this (default: no timeout)",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def cli_options_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed flags onto config.json key names."""
    return {
        "bundle": args.bundle,
        "guideFile": args.guide_file,
        "generateOnly": args.generate_only,
        "runOnly": args.run_only,
        "saveLogs": args.save_logs,
        "parallel": args.parallel,
        "maxJobs": args.max_jobs,
        "shallowClone": args.shallow_clone,
        "useWorktrees": args.worktrees,
        "agent": args.agent,
        "taskTimeout": args.task_timeout,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """主函数

    Returns:
        退出码（0 成功，1 失败）
    """
    args = parse_args(argv)
    try:
        return run_pipeline(cli_options_from_args(args))
    except KeyboardInterrupt:
        request_shutdown()
        log_warning("Interrupted, running agent processes were terminated")
        return 130


if __name__ == "__main__":
    sys.exit(main())
