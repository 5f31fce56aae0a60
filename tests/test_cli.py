from pathlib import Path

import pytest

from multi_repo_agent import cli
from multi_repo_agent.application.runner import run_pipeline
from multi_repo_agent.core.provisioner import RepositoryProvisioner
from multi_repo_agent.domain.models import ProvisionResult


class FakeProvisioner:
    def __init__(self, workspace_root, failing=()):
        self.workspace_root = Path(workspace_root)
        self.failing = set(failing)

    def ensure_repository(self, org, repo):
        if repo in self.failing:
            return ProvisionResult(org=org, repo=repo, success=False, step="fork", error="forbidden")
        path = self.workspace_root / repo
        path.mkdir(parents=True, exist_ok=True)
        return ProvisionResult(org=org, repo=repo, success=True, path=path)


class _Offline:
    """git/gh stand-in for runs that must not touch either."""

    def __getattr__(self, name):
        raise AssertionError(f"unexpected git/gh call: {name}")


def _runner(calls):
    def run(command, input_text, cwd, log_file, timeout):
        calls.append((command[0], Path(cwd).name, log_file))
        return 0

    return run


def _write_bundle(root, repos="[a, broken, b]"):
    bundle = root / "bundles" / "upgrade"
    bundle.mkdir(parents=True)
    (bundle / "target.yml").write_text(
        f"target:\n  - org: acme\n    repos: {repos}\n    branches: [main]\n", encoding="utf-8"
    )
    (bundle / "task.md").write_text("Upgrade deps\n", encoding="utf-8")
    (bundle / "GUIDE.md").write_text("Bundle guide\n", encoding="utf-8")
    return bundle


def test_cli_flags_map_to_config_keys():
    args = cli.parse_args(["--bundle", "b", "--parallel", "--max-jobs", "8", "--full-clone", "--worktrees"])

    options = cli.cli_options_from_args(args)

    assert options["bundle"] == "b"
    assert options["parallel"] is True
    assert options["maxJobs"] == 8
    assert options["shallowClone"] is False
    assert options["useWorktrees"] is True
    assert options["saveLogs"] is None
    assert options["agent"] is None


@pytest.mark.parametrize("value", ["0", "-2", "many"])
def test_invalid_max_jobs_exits_with_one(value):
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(["--max-jobs", value])

    assert excinfo.value.code == 1


def test_generate_only_and_run_only_fail_before_writing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_bundle(tmp_path)

    code = cli.main(["--bundle", "bundles/upgrade", "--generate-only", "--run-only"])

    assert code == 1
    assert not (tmp_path / "tasks").exists()
    assert not (tmp_path / "workspace").exists()


def test_provisioning_failure_only_skips_that_repo(tmp_path):
    _write_bundle(tmp_path)
    calls = []

    code = run_pipeline(
        {"bundle": "bundles/upgrade"},
        root_dir=tmp_path,
        provisioner=FakeProvisioner(tmp_path / "workspace", failing={"broken"}),
        runner=_runner(calls),
    )

    assert code == 0
    assert [repo for _, repo, _ in calls] == ["a", "b"]
    assert sorted(path.name for path in (tmp_path / "tasks").iterdir()) == ["001_a_main.md", "002_b_main.md"]


def test_generate_only_writes_tasks_without_running(tmp_path):
    _write_bundle(tmp_path, repos="[a]")
    calls = []

    code = run_pipeline(
        {"bundle": "bundles/upgrade", "generateOnly": True},
        root_dir=tmp_path,
        provisioner=FakeProvisioner(tmp_path / "workspace"),
        runner=_runner(calls),
    )

    assert code == 0
    assert calls == []
    content = (tmp_path / "tasks" / "001_a_main.md").read_text(encoding="utf-8")
    assert "<guide>\nBundle guide\n</guide>" in content


def test_run_only_uses_existing_tasks_and_bundle_config(tmp_path):
    bundle = _write_bundle(tmp_path, repos="[a, b]")
    (bundle / "config.json").write_text('{"parallel": true, "maxJobs": 2, "agent": "codex"}', encoding="utf-8")
    provisioner = FakeProvisioner(tmp_path / "workspace")
    assert run_pipeline({"bundle": "bundles/upgrade", "generateOnly": True}, tmp_path, provisioner) == 0
    calls = []

    code = run_pipeline({"bundle": "bundles/upgrade", "runOnly": True}, tmp_path, runner=_runner(calls))

    assert code == 0
    assert sorted(repo for _, repo, _ in calls) == ["a", "b"]
    assert {command for command, _, _ in calls} == {"codex"}
    assert all(log_file is not None for _, _, log_file in calls)


def test_run_only_without_tasks_fails(tmp_path):
    assert run_pipeline({"runOnly": True}, root_dir=tmp_path) == 1


def test_missing_bundle_fails(tmp_path):
    assert run_pipeline({"bundle": "bundles/nope"}, root_dir=tmp_path) == 1


def test_keyboard_interrupt_exits_130(monkeypatch):
    def interrupted(options):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run_pipeline", interrupted)

    assert cli.main([]) == 130


def test_plain_legacy_targets_run_against_existing_clones(tmp_path):
    bundle = tmp_path / "legacy"
    bundle.mkdir()
    (bundle / "target.yml").write_text(
        "target:\n  - repo: svc\n    branch: main\n  - repo: api\n    branch: dev\n", encoding="utf-8"
    )
    (bundle / "task.md").write_text("Upgrade deps\n", encoding="utf-8")
    (tmp_path / "GUIDE.md").write_text("Guide\n", encoding="utf-8")
    (tmp_path / "workspace" / "svc").mkdir(parents=True)
    offline = _Offline()
    provisioner = RepositoryProvisioner(tmp_path / "workspace", git=offline, github=offline)
    calls = []

    code = run_pipeline({"bundle": "legacy"}, tmp_path, provisioner, _runner(calls))

    assert code == 0
    assert [repo for _, repo, _ in calls] == ["svc"]
    assert sorted(path.name for path in (tmp_path / "tasks").iterdir()) == ["001_svc_main.md"]
    content = (tmp_path / "tasks" / "001_svc_main.md").read_text(encoding="utf-8")
    assert content.startswith("# Task: svc/main (from svc)\n")
