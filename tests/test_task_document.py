from pathlib import Path

import pytest

from multi_repo_agent.domain.models import Job
from multi_repo_agent.domain.task_document import (
    build_task_name,
    parse_task_document,
    render_task_document,
    sanitize_branch_name,
    strip_blank_lines,
)


def test_task_name_is_zero_padded_with_sanitized_branch():
    assert build_task_name(1, "svc", "main") == "001_svc_main"
    assert build_task_name(12, "svc", "feature/x/y") == "012_svc_feature_x_y"
    assert build_task_name(1000, "svc", "dev") == "1000_svc_dev"


def test_sanitize_branch_name_replaces_separators():
    assert sanitize_branch_name("release/1.0") == "release_1.0"
    assert sanitize_branch_name("a\\b") == "a_b"


def test_strip_blank_lines_drops_whitespace_only_lines():
    assert strip_blank_lines("one\n\n   \ntwo\n") == "one\ntwo"


def test_rendered_document_layout():
    job = Job("acme", "svc", "release/1.0")

    content = render_task_document(job, Path("/work/svc"), "follow the guide", "bump deps")

    assert content.startswith("# Task: svc/release/1.0 (from acme/svc)\n")
    assert "## Repository Info\n- **Organization**: acme\n" in content
    assert "- **Workspace Path**: /work/svc\n" in content
    assert "Task Directory" not in content
    assert "## Guide\n<guide>\nfollow the guide\n</guide>" in content
    assert "## Description\n<task>\nbump deps\n</task>" in content


def test_parse_reads_back_rendered_fields():
    job = Job("acme", "my_repo", "feat/a_b")
    content = render_task_document(job, Path("/work/wt"), "g", "t", task_dir=Path("/tasks/001"))

    info = parse_task_document(content)

    assert info.to_job() == job
    assert info.workspace_path == "/work/wt"
    assert info.task_dir == "/tasks/001"


def test_fields_inside_guide_do_not_shadow_header():
    job = Job("acme", "svc", "main")
    guide = "- **Workspace Path**: /somewhere/else"

    info = parse_task_document(render_task_document(job, Path("/work/svc"), guide, "t"))

    assert info.workspace_path == "/work/svc"


def test_parse_without_workspace_path_raises():
    with pytest.raises(ValueError, match="workspace path"):
        parse_task_document("# Task\n\n## Repository Info\n- **Repository**: svc\n")
