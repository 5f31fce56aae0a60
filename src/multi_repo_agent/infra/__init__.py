"""Infrastructure helpers: logging and filesystem paths."""

from .logger import log_error, log_info, log_success, log_warning, print_header
from .paths import get_root_dir, resolve_path

__all__ = [
    "log_info",
    "log_success",
    "log_warning",
    "log_error",
    "print_header",
    "get_root_dir",
    "resolve_path",
]
