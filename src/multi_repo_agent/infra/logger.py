# 日志输出模块：提供统一的日志输出功能
#
# 主要功能：
#   - log_info()：输出信息日志
#   - log_success()：输出成功日志
#   - log_error()：输出错误日志
#   - log_warning()：输出警告日志
#
# 特性：
#   - 带时间戳
#   - 支持颜色输出（如果终端支持）
#   - 并行执行时按行加锁，避免多个仓库分组的输出交错

import sys
import threading
from datetime import datetime

import colorama

colorama.init()

# ANSI 颜色代码
COLOR_RESET = '\033[0m'
COLOR_INFO = '\033[0;36m'      # 青色
COLOR_SUCCESS = '\033[0;32m'   # 绿色
COLOR_ERROR = '\033[0;31m'     # 红色
COLOR_WARNING = '\033[0;33m'   # 黄色

_print_lock = threading.Lock()


def get_timestamp() -> str:
    """获取时间戳"""
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _format_message(level: str, color: str, message: str, stream) -> str:
    """格式化日志消息"""
    timestamp = get_timestamp()
    if stream.isatty():
        return f"{color}[{level}]{COLOR_RESET} [{timestamp}] {message}"
    return f"[{level}] [{timestamp}] {message}"


def _emit(level: str, color: str, message: str, stream=None) -> None:
    stream = stream or sys.stdout
    with _print_lock:
        print(_format_message(level, color, message, stream), file=stream, flush=True)


def log_info(message: str) -> None:
    """输出信息日志"""
    _emit("INFO", COLOR_INFO, message)


def log_success(message: str) -> None:
    """输出成功日志"""
    _emit("SUCCESS", COLOR_SUCCESS, message)


def log_error(message: str) -> None:
    """输出错误日志（输出到 stderr）"""
    _emit("ERROR", COLOR_ERROR, message, sys.stderr)


def log_warning(message: str) -> None:
    """输出警告日志"""
    _emit("WARNING", COLOR_WARNING, message)


def print_header(title: str) -> None:
    """输出分段标题"""
    rule = "=" * 60
    with _print_lock:
        print(flush=True)
        print(rule, flush=True)
        print(title, flush=True)
        print(rule, flush=True)
