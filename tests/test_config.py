import json

import pytest

from multi_repo_agent.core.config import (
    DEFAULT_CONFIG,
    apply_parallel_rules,
    check_generation_inputs,
    load_config,
    resolve_bundle_paths,
    validate_config,
)
from multi_repo_agent.errors import ConfigError


def _write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def test_defaults_when_no_layers(tmp_path):
    assert load_config({}, None, tmp_path) == DEFAULT_CONFIG


def test_layers_resolve_last_writer_wins(tmp_path):
    _write_json(tmp_path / "config.json", {"maxJobs": 2, "saveLogs": True, "agent": "codex"})
    _write_json(tmp_path / "bundles" / "b" / "config.json", {"maxJobs": 6, "unknownKey": 1})

    config = load_config({"maxJobs": 8, "parallel": None}, "bundles/b", tmp_path)

    assert config["maxJobs"] == 8
    assert config["saveLogs"] is True
    assert config["agent"] == "codex"
    assert config["parallel"] is False
    assert "unknownKey" not in config


def test_bundle_layer_overrides_root_layer(tmp_path):
    _write_json(tmp_path / "config.json", {"maxJobs": 2})
    _write_json(tmp_path / "bundles" / "b" / "config.json", {"maxJobs": 6})

    assert load_config({}, "bundles/b", tmp_path)["maxJobs"] == 6


def test_unreadable_config_layer_is_ignored(tmp_path, capsys):
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")

    assert load_config({}, None, tmp_path) == DEFAULT_CONFIG
    assert "Error reading config file" in capsys.readouterr().out


def test_generate_only_and_run_only_conflict():
    config = dict(DEFAULT_CONFIG, generateOnly=True, runOnly=True)

    with pytest.raises(ConfigError, match="cannot be used together"):
        validate_config(config)


@pytest.mark.parametrize("value", [0, -1, "abc", True, 1.5])
def test_invalid_max_jobs_rejected(value):
    with pytest.raises(ConfigError, match="--max-jobs must be a positive integer"):
        validate_config(dict(DEFAULT_CONFIG, maxJobs=value))


def test_string_values_from_json_are_normalized():
    config = validate_config(dict(DEFAULT_CONFIG, maxJobs="3", parallel="true", taskTimeout=90))

    assert config["maxJobs"] == 3
    assert config["parallel"] is True
    assert config["taskTimeout"] == 90.0


def test_unknown_agent_rejected():
    with pytest.raises(ConfigError, match="Unknown agent"):
        validate_config(dict(DEFAULT_CONFIG, agent="nope"))


def test_parallel_forces_log_saving():
    config = apply_parallel_rules(dict(DEFAULT_CONFIG, parallel=True))

    assert config["saveLogs"] is True


def test_bundle_paths_prefer_bundle_guide(tmp_path):
    bundle = tmp_path.resolve() / "bundles" / "b"
    bundle.mkdir(parents=True)
    (bundle / "GUIDE.md").write_text("bundle guide", encoding="utf-8")

    paths = resolve_bundle_paths("bundles/b", "GUIDE.md", tmp_path)

    assert paths.guide_file == bundle / "GUIDE.md"
    assert paths.bundle_guide
    assert paths.target_file == bundle / "target.yml"
    assert paths.output_dir == tmp_path.resolve() / "tasks"


def test_explicit_guide_file_beats_bundle_guide(tmp_path):
    bundle = tmp_path.resolve() / "bundles" / "b"
    bundle.mkdir(parents=True)
    (bundle / "GUIDE.md").write_text("bundle guide", encoding="utf-8")

    paths = resolve_bundle_paths("bundles/b", "docs/GUIDE.md", tmp_path, guide_from_cli=True)

    assert paths.guide_file == tmp_path.resolve() / "docs" / "GUIDE.md"
    assert not paths.bundle_guide


def test_missing_bundle_directory(tmp_path):
    with pytest.raises(ConfigError, match="Bundle directory 'bundles/missing' not found"):
        resolve_bundle_paths("bundles/missing", "GUIDE.md", tmp_path)


def test_missing_generation_inputs(tmp_path):
    bundle = tmp_path / "b"
    bundle.mkdir()
    (bundle / "target.yml").write_text("target: []\n", encoding="utf-8")

    paths = resolve_bundle_paths("b", "GUIDE.md", tmp_path)

    with pytest.raises(ConfigError, match="task.md not found"):
        check_generation_inputs(paths)
