# 目标解析模块：把 target.yml 展开为 (org, repo, branch) 任务列表
#
# 主要功能：
#   - parse_target_file()：读取并解析 target.yml
#   - expand()：按 entry → repo → branch 的声明顺序做笛卡尔积展开
#
# 支持两种格式：
#   - 分组格式：{org, repos: [...], branches: [...]}
#   - 旧格式：{repo, branch}（org 来自条目、顶层 org，或 owner/name 形式的 repo，都没有时为空）
#
# 无效条目只输出警告并跳过，不会中断其他条目的处理。

from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

import yaml

from ..domain.models import Job
from ..errors import ConfigError
from ..infra.logger import log_warning

TARGET_KEY = "target"


def _as_name(value: Any, field: str) -> str:
    # YAML turns bare numbers into int/float; branch names like ``2`` are still valid
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"'{field}' must be a string (got: {value!r})")
    name = str(value).strip()
    if not name:
        raise ConfigError(f"'{field}' must not be empty")
    return name


def _as_name_list(entry: Mapping[str, Any], field: str) -> List[str]:
    if field not in entry or entry[field] is None:
        raise ConfigError(f"missing '{field}'")
    value = entry[field]
    if isinstance(value, (list, tuple)):
        return [_as_name(item, field) for item in value]
    return [_as_name(value, field)]


def _expand_grouped(entry: Mapping[str, Any]) -> List[Job]:
    if not entry.get("org"):
        raise ConfigError("missing 'org'")
    org = _as_name(entry["org"], "org")
    repos = _as_name_list(entry, "repos")
    branches = _as_name_list(entry, "branches")
    return [Job(org=org, repo=repo, branch=branch) for repo in repos for branch in branches]


def _expand_legacy(entry: Mapping[str, Any], default_org: Optional[str]) -> List[Job]:
    repo = _as_name(entry.get("repo"), "repo")
    branch = _as_name(entry.get("branch"), "branch")
    org = entry.get("org") or default_org
    if not org and "/" in repo:
        org, repo = repo.split("/", 1)
    if not org:
        # plain repo/branch pairs: provisioning decides whether the repo is usable
        return [Job(org="", repo=repo, branch=branch)]
    return [Job(org=_as_name(org, "org"), repo=repo, branch=branch)]


def expand(spec: Iterable[Any], default_org: Optional[str] = None) -> List[Job]:
    """Expand target entries into jobs in declaration order.

    Duplicates are kept; malformed entries are skipped with a warning.
    """
    jobs: List[Job] = []
    for index, entry in enumerate(spec, start=1):
        try:
            if not isinstance(entry, Mapping):
                raise ConfigError(f"entry must be a mapping (got: {entry!r})")
            if "repos" in entry or "branches" in entry:
                entry_jobs = _expand_grouped(entry)
            elif "repo" in entry:
                entry_jobs = _expand_legacy(entry, default_org)
            else:
                raise ConfigError("expected 'org'/'repos'/'branches' or 'repo'/'branch'")
        except ConfigError as exc:
            log_warning(f"Skipping invalid target entry #{index}: {exc}")
            continue

        if not entry_jobs:
            log_warning(f"Target entry #{index} has empty repos or branches, no jobs generated")
        jobs.extend(entry_jobs)
    return jobs


def parse_target_text(content: str) -> List[Job]:
    """Parse target.yml content into jobs."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid target YAML: {exc}") from exc

    if not isinstance(data, Mapping) or not isinstance(data.get(TARGET_KEY), list):
        raise ConfigError(f"Invalid target format: missing or invalid '{TARGET_KEY}' list")

    default_org = data.get("org")
    if default_org is not None:
        default_org = _as_name(default_org, "org")
    return expand(data[TARGET_KEY], default_org=default_org)


def parse_target_file(target_file: Union[str, Path]) -> List[Job]:
    path = Path(target_file)
    if not path.is_file():
        raise ConfigError(f"{path} not found")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    return parse_target_text(content)
