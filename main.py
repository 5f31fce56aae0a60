#!/usr/bin/env python3
# 多仓库 AI agent 批量执行脚本：从源码目录直接运行
#
# 主要功能：
#   - 解析 target.yml，展开为 (org, repo, branch) 任务
#   - 确保每个仓库已 fork 并克隆到 workspace/，upstream 指向目标 org
#   - 为每个任务生成任务文档（可选 git worktree）
#   - 顺序或按仓库分组并行调用 agent CLI，输出最终统计
#
# 使用方式：
#   python main.py --bundle bundles/my-task [--parallel --max-jobs 4]
#
# 安装后也可以直接运行 multi-repo-agent

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from multi_repo_agent.cli import main  # noqa: E402


if __name__ == '__main__':
    sys.exit(main())
