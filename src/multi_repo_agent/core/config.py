"""Layered run configuration and bundle path resolution.

Priority, lowest to highest: built-in defaults, root ``config.json``,
bundle ``config.json``, command-line flags. Each layer overwrites the
previous one key by key (no deep merge); keys a layer does not set fall
through to the layer below.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ..errors import ConfigError
from ..infra.logger import log_info, log_warning
from ..infra.paths import (
    CONFIG_FILE_NAME,
    GUIDE_FILE_NAME,
    LOGS_DIR_NAME,
    TARGET_FILE_NAME,
    TASK_FILE_NAME,
    TASKS_DIR_NAME,
    WORKSPACE_DIR_NAME,
    get_root_dir,
    resolve_path,
)
from .agents import AGENT_COMMANDS, DEFAULT_AGENT

DEFAULT_CONFIG: Dict[str, Any] = {
    "parallel": False,
    "maxJobs": 4,
    "saveLogs": False,
    "generateOnly": False,
    "runOnly": False,
    "guideFile": GUIDE_FILE_NAME,
    "shallowClone": True,
    "useWorktrees": False,
    "agent": DEFAULT_AGENT,
    "taskTimeout": None,
}

CONFIG_KEYS = frozenset(DEFAULT_CONFIG)
BOOL_KEYS = ("parallel", "saveLogs", "generateOnly", "runOnly", "shallowClone", "useWorktrees")


@dataclass(frozen=True)
class BundlePaths:
    """Resolved input/output locations for one run."""

    target_file: Path
    task_file: Path
    guide_file: Path
    output_dir: Path
    log_dir: Path
    workspace_dir: Path
    bundle_dir: Optional[Path] = None
    bundle_guide: bool = False


def read_json_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Read one config layer; a missing or unreadable file yields ``{}``."""
    path = Path(config_path)
    if not path.is_file():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log_warning(f"Error reading config file {path}: {exc}")
        return {}

    if not isinstance(data, dict):
        log_warning(f"Config file {path} must contain a JSON object, ignoring it")
        return {}

    return {key: value for key, value in data.items() if key in CONFIG_KEYS}


def merge_config_layers(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge layers in order; the last layer that sets a key wins."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if key in CONFIG_KEYS:
                merged[key] = value
    return merged


def load_config(
    cli_options: Optional[Mapping[str, Any]] = None,
    bundle_path: Optional[Union[str, Path]] = None,
    root_dir: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """Resolve defaults → root config → bundle config → CLI flags.

    CLI options left as ``None`` are treated as not given.
    """
    root = get_root_dir(root_dir)
    root_layer = read_json_config(root / CONFIG_FILE_NAME)

    bundle_layer: Dict[str, Any] = {}
    if bundle_path:
        bundle_layer = read_json_config(resolve_path(bundle_path, root) / CONFIG_FILE_NAME)

    cli_layer = {key: value for key, value in (cli_options or {}).items() if value is not None}
    return merge_config_layers(DEFAULT_CONFIG, root_layer, bundle_layer, cli_layer)


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ConfigError(f"'{key}' must be true or false (got: {value!r})")


def _coerce_max_jobs(value: Any) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"--max-jobs must be a positive integer (got: {value})")
    return value


def _coerce_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"taskTimeout must be a positive number of seconds or null (got: {value!r})")
    return float(value)


def validate_config(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a merged config and return a normalized copy.

    Raises:
        ConfigError: conflicting flags or invalid values.
    """
    normalized = dict(config)
    for key in BOOL_KEYS:
        normalized[key] = _coerce_bool(key, normalized.get(key, DEFAULT_CONFIG[key]))

    if normalized["generateOnly"] and normalized["runOnly"]:
        raise ConfigError("--generate-only and --run-only cannot be used together")

    normalized["maxJobs"] = _coerce_max_jobs(normalized.get("maxJobs"))
    normalized["taskTimeout"] = _coerce_timeout(normalized.get("taskTimeout"))

    agent = normalized.get("agent")
    if agent not in AGENT_COMMANDS:
        choices = ", ".join(sorted(AGENT_COMMANDS))
        raise ConfigError(f"Unknown agent '{agent}' (choose from: {choices})")

    guide_file = normalized.get("guideFile")
    if not isinstance(guide_file, str) or not guide_file.strip():
        raise ConfigError(f"guideFile must be a non-empty path (got: {guide_file!r})")

    return normalized


def apply_parallel_rules(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Parallel runs always save logs; interleaved child output is unreadable."""
    updated = dict(config)
    if updated.get("parallel") and not updated.get("saveLogs"):
        updated["saveLogs"] = True
        log_info("Parallel mode enabled: automatically enabling log saving")
    return updated


def resolve_bundle_paths(
    bundle_path: Optional[Union[str, Path]],
    guide_file: str = GUIDE_FILE_NAME,
    root_dir: Optional[Union[str, Path]] = None,
    guide_from_cli: bool = False,
) -> BundlePaths:
    """Resolve target/task/guide inputs and the tasks/logs/workspace dirs.

    A bundle's own ``GUIDE.md`` is preferred unless ``--guide-file`` was given.
    """
    root = get_root_dir(root_dir)
    guide = resolve_path(guide_file, root)
    bundle_dir: Optional[Path] = None
    bundle_guide = False

    if bundle_path:
        bundle_dir = resolve_path(bundle_path, root)
        if not bundle_dir.is_dir():
            raise ConfigError(f"Bundle directory '{bundle_path}' not found")
        target_file = bundle_dir / TARGET_FILE_NAME
        task_file = bundle_dir / TASK_FILE_NAME
        candidate = bundle_dir / GUIDE_FILE_NAME
        if not guide_from_cli and candidate.is_file():
            guide = candidate
            bundle_guide = True
    else:
        target_file = root / TARGET_FILE_NAME
        task_file = root / TASK_FILE_NAME

    return BundlePaths(
        target_file=target_file,
        task_file=task_file,
        guide_file=guide,
        output_dir=root / TASKS_DIR_NAME,
        log_dir=root / LOGS_DIR_NAME,
        workspace_dir=root / WORKSPACE_DIR_NAME,
        bundle_dir=bundle_dir,
        bundle_guide=bundle_guide,
    )


def check_generation_inputs(paths: BundlePaths) -> None:
    """Fail fast when target/task/guide files are missing."""
    for path in (paths.target_file, paths.task_file, paths.guide_file):
        if not path.is_file():
            raise ConfigError(f"{path} not found")
