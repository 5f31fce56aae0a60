import pytest

from multi_repo_agent.core.targets import expand, parse_target_file, parse_target_text
from multi_repo_agent.domain.models import Job
from multi_repo_agent.errors import ConfigError


def test_single_entry_expands_branches_in_order():
    jobs = expand([{"org": "acme", "repos": ["svc"], "branches": ["main", "dev"]}])

    assert jobs == [Job("acme", "svc", "main"), Job("acme", "svc", "dev")]


def test_expansion_is_cross_product_in_declaration_order():
    entries = [
        {"org": "acme", "repos": ["a", "b"], "branches": ["main", "dev", "release/1.0"]},
        {"org": "other", "repos": ["c"], "branches": ["main"]},
    ]

    jobs = expand(entries)

    assert len(jobs) == 2 * 3 + 1 * 1
    assert [(job.org, job.repo, job.branch) for job in jobs] == [
        ("acme", "a", "main"),
        ("acme", "a", "dev"),
        ("acme", "a", "release/1.0"),
        ("acme", "b", "main"),
        ("acme", "b", "dev"),
        ("acme", "b", "release/1.0"),
        ("other", "c", "main"),
    ]


def test_duplicates_are_kept():
    entry = {"org": "acme", "repos": ["svc"], "branches": ["main"]}

    assert len(expand([entry, entry])) == 2


def test_malformed_entries_are_skipped_with_warning(capsys):
    entries = [
        {"repos": ["svc"], "branches": ["main"]},
        {"org": "acme", "branches": ["main"]},
        "not-a-mapping",
        {"org": "acme", "repos": ["ok"], "branches": ["main"]},
    ]

    jobs = expand(entries)

    assert jobs == [Job("acme", "ok", "main")]
    out = capsys.readouterr().out
    assert "Skipping invalid target entry #1" in out
    assert "Skipping invalid target entry #2" in out
    assert "Skipping invalid target entry #3" in out


def test_empty_repos_or_branches_contribute_nothing(capsys):
    jobs = expand(
        [
            {"org": "acme", "repos": [], "branches": ["main"]},
            {"org": "acme", "repos": ["svc"], "branches": []},
        ]
    )

    assert jobs == []
    assert capsys.readouterr().out.count("no jobs generated") == 2


def test_parse_grouped_yaml_with_scalar_values():
    content = """
target:
  - org: acme
    repos: svc
    branches: [main, 2]
"""

    assert parse_target_text(content) == [Job("acme", "svc", "main"), Job("acme", "svc", "2")]


def test_parse_legacy_pairs_resolve_org():
    content = """
org: default-org
target:
  - repo: svc
    branch: main
  - repo: api
    branch: dev
    org: acme
  - repo: someone/tool
    branch: main
"""

    jobs = parse_target_text(content)

    assert jobs == [
        Job("default-org", "svc", "main"),
        Job("acme", "api", "dev"),
        Job("default-org", "someone/tool", "main"),
    ]


def test_legacy_owner_slash_repo_without_default_org():
    jobs = parse_target_text("target:\n  - repo: someone/tool\n    branch: main\n")

    assert jobs == [Job("someone", "tool", "main")]


def test_plain_legacy_pairs_become_jobs_without_org():
    content = "target:\n  - repo: svc\n    branch: main\n  - repo: api\n    branch: dev\n"

    jobs = parse_target_text(content)

    assert jobs == [Job("", "svc", "main"), Job("", "api", "dev")]
    assert jobs[0].label == "svc@main"


@pytest.mark.parametrize(
    "content",
    [
        "target: [unclosed",
        "something_else: []",
        "target: not-a-list",
        "",
    ],
)
def test_invalid_target_documents_raise_config_error(content):
    with pytest.raises(ConfigError):
        parse_target_text(content)


def test_missing_target_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        parse_target_file(tmp_path / "target.yml")
