"""Tests for configuration loading.

Run with: pytest tests/test_config.py -v
"""

from __future__ import annotations

from pathlib import Path

import pytest

from release_changelog.config import (
    ACCESS_TOKEN_ENV_VAR,
    ChangelogConfig,
    ContentConfig,
    Grouping,
    Selection,
    load_config,
)
from release_changelog.errors import ConfigError


class TestDefaults:
    def test_issue_defaults(self) -> None:
        config = ChangelogConfig()

        assert config.issues.selection == Selection.ALL
        assert config.issues.grouping == Grouping.LABEL
        assert config.issues.exclude_labels == ["duplicate", "invalid", "question", "wontfix"]
        assert [g.title for g in config.issues.label_groups()] == [
            "Release Summary",
            "Removed",
            "Breaking Changes",
            "Deprecated",
            "New Features",
            "Enhancements",
            "Fixed Bugs",
            "Security Fixes",
        ]

    def test_merge_defaults(self) -> None:
        config = ChangelogConfig()

        assert config.merges.selection == Selection.ALL
        assert config.merges.grouping == Grouping.SIMPLE
        assert config.merges.label_groups() == []
        assert config.merges.branch == ""

    def test_general_and_remote_defaults(self) -> None:
        config = ChangelogConfig()

        assert config.general.file == "CHANGELOG.md"
        assert config.remote.concurrency == 10
        assert config.remote.page_size == 100

    def test_release_url_template(self) -> None:
        content = ContentConfig(release_url="https://example.com/{tag}/notes")
        assert content.release_url_for("v1.0.0") == "https://example.com/v1.0.0/notes"
        assert ContentConfig().release_url_for("v1.0.0") == ""


class TestLoadConfig:
    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv(ACCESS_TOKEN_ENV_VAR, raising=False)

        config = load_config()

        assert config.general.file == "CHANGELOG.md"
        assert config.repo.access_token == ""

    def test_hyphenated_keys(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "changelog.yml").write_text(
            "general:\n"
            "  file: HISTORY.md\n"
            "tags:\n"
            "  from: v0.1.0\n"
            "  future: v1.0.0\n"
            "  exclude-regex: '-rc'\n"
            "issues:\n"
            "  grouping: milestone\n"
            "  exclude-labels: [wontfix]\n"
            "merges:\n"
            "  selection: labeled\n"
            "  branch: develop\n"
            "  feature-labels: [feature]\n"
            "content:\n"
            "  release-url: https://example.com/{tag}\n"
            "remote:\n"
            "  concurrency: 4\n"
        )

        config = load_config()

        assert config.general.file == "HISTORY.md"
        assert config.tags.from_tag == "v0.1.0"
        assert config.tags.future_tag == "v1.0.0"
        assert config.tags.exclude_regex == "-rc"
        assert config.issues.grouping == Grouping.MILESTONE
        assert config.issues.exclude_labels == ["wontfix"]
        assert config.merges.selection == Selection.LABELED
        assert config.merges.branch == "develop"
        assert [g.title for g in config.merges.label_groups()] == ["New Features"]
        assert config.content.release_url == "https://example.com/{tag}"
        assert config.remote.concurrency == 4

    def test_token_from_environment(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv(ACCESS_TOKEN_ENV_VAR, "ghp_env")

        assert load_config().repo.access_token == "ghp_env"

    def test_repo_section_is_ignored(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv(ACCESS_TOKEN_ENV_VAR, raising=False)
        path = tmp_path / "custom.yaml"
        path.write_text("repo:\n  access-token: leaked\n")

        assert load_config(path).repo.access_token == ""

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "changelog.yml"
        path.write_text("general: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "changelog.yml"
        path.write_text("general:\n  colour: blue\n")

        with pytest.raises(ConfigError, match="Invalid changelog config"):
            load_config(path)

    def test_invalid_enum(self, tmp_path: Path) -> None:
        path = tmp_path / "changelog.yml"
        path.write_text("issues:\n  grouping: alphabetical\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_page_size_capped(self, tmp_path: Path) -> None:
        path = tmp_path / "changelog.yml"
        path.write_text("remote:\n  page-size: 500\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "changelog.yml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="expected a mapping"):
            load_config(path)
