# 路径处理模块：提供运行目录和默认目录名
#
# 主要功能：
#   - 获取运行根目录（ROOT_DIR，默认当前工作目录）
#   - 默认目录名：tasks/、logs/、workspace/
#   - 默认文件名：target.yml、task.md、GUIDE.md、config.json

from pathlib import Path
from typing import Optional, Union

TASKS_DIR_NAME = "tasks"
LOGS_DIR_NAME = "logs"
WORKSPACE_DIR_NAME = "workspace"

TARGET_FILE_NAME = "target.yml"
TASK_FILE_NAME = "task.md"
GUIDE_FILE_NAME = "GUIDE.md"
CONFIG_FILE_NAME = "config.json"


def get_root_dir(root: Optional[Union[str, Path]] = None) -> Path:
    """获取运行根目录

    task/log/workspace 目录都相对于这里创建，与原有脚本在当前目录下运行的行为一致。
    """
    if root is None:
        return Path.cwd().resolve()
    return Path(root).resolve()


def resolve_path(value: Union[str, Path], base_dir: Path) -> Path:
    """相对路径按 base_dir 解析，绝对路径原样返回"""
    path = Path(value)
    if path.is_absolute():
        return path
    return base_dir / path
