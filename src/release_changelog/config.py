"""Configuration for changelog generation.

Settings come from three places, later ones overriding earlier ones:
1. Defaults defined on the models below
2. A ``changelog.yml`` / ``changelog.yaml`` file in the working directory
3. Command-line flags (see generator.main)

The YAML file uses hyphenated keys, for example:

    general:
      file: CHANGELOG.md
    tags:
      exclude-regex: "-rc[0-9]+$"
    issues:
      grouping: milestone
      exclude-labels: [duplicate, wontfix]
    merges:
      branch: main
    content:
      release-url: https://example.com/releases/{tag}

The access token is never read from the file; it comes from the
CHANGELOG_ACCESS_TOKEN environment variable or the --access-token flag.
"""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from release_changelog.errors import ConfigError

ACCESS_TOKEN_ENV_VAR = "CHANGELOG_ACCESS_TOKEN"
CONFIG_FILES = ("changelog.yml", "changelog.yaml")


def _hyphenate(name: str) -> str:
    return name.replace("_", "-")


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=_hyphenate,
        populate_by_name=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Platform(StrEnum):
    """Platform hosting the remote repository."""

    GITHUB = "github.com"
    GITLAB = "gitlab.com"


class Selection(StrEnum):
    """Which changes of a kind are considered for the changelog.

    NONE: No changes of this kind
    ALL: Unlabeled changes plus labeled ones passing the label filters
    LABELED: Only labeled changes passing the label filters
    """

    NONE = "none"
    ALL = "all"
    LABELED = "labeled"


class Grouping(StrEnum):
    """How the changes of a release are grouped.

    SIMPLE: A single catch-all group
    MILESTONE: One group per milestone, then a catch-all group
    LABEL: One group per configured label set, then a catch-all group
    """

    SIMPLE = "simple"
    MILESTONE = "milestone"
    LABEL = "label"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class LabelGroup(BaseModel):
    """A named set of labels; changes carrying any of them form one group."""

    title: str
    labels: list[str]


class RepoConfig(_ConfigModel):
    """Remote repository coordinates (resolved at runtime, not from YAML)."""

    platform: Platform | None = None
    path: str = ""
    access_token: str = Field(default="", exclude=True, repr=False)


class GeneralConfig(_ConfigModel):
    file: str = "CHANGELOG.md"
    base: str = ""
    print: bool = False
    verbose: bool = False


class TagsConfig(_ConfigModel):
    """Tag window and tag filtering.

    Attributes:
        from_tag: Oldest tag to generate a release for
        to_tag: Most recent tag to generate a release for
        future_tag: Name of a not-yet-created tag for unreleased changes
        exclude: Tag names never considered
        exclude_regex: Regular expression of tag names never considered
    """

    from_tag: str = Field(default="", alias="from")
    to_tag: str = Field(default="", alias="to")
    future_tag: str = Field(default="", alias="future")
    exclude: list[str] = Field(default_factory=list)
    exclude_regex: str = ""


class ChangesConfig(_ConfigModel):
    """Selection and grouping settings shared by issues and merges."""

    selection: Selection = Selection.ALL
    include_labels: list[str] = Field(default_factory=list)
    exclude_labels: list[str] = Field(default_factory=list)
    grouping: Grouping = Grouping.SIMPLE
    summary_labels: list[str] = Field(default_factory=list)
    removed_labels: list[str] = Field(default_factory=list)
    breaking_labels: list[str] = Field(default_factory=list)
    deprecated_labels: list[str] = Field(default_factory=list)
    feature_labels: list[str] = Field(default_factory=list)
    enhancement_labels: list[str] = Field(default_factory=list)
    bug_labels: list[str] = Field(default_factory=list)
    security_labels: list[str] = Field(default_factory=list)

    def label_groups(self) -> list[LabelGroup]:
        """Return the configured label groups in rendering order.

        Label sets left empty produce no group.
        """
        candidates = [
            ("Release Summary", self.summary_labels),
            ("Removed", self.removed_labels),
            ("Breaking Changes", self.breaking_labels),
            ("Deprecated", self.deprecated_labels),
            ("New Features", self.feature_labels),
            ("Enhancements", self.enhancement_labels),
            ("Fixed Bugs", self.bug_labels),
            ("Security Fixes", self.security_labels),
        ]
        return [
            LabelGroup(title=title, labels=list(labels))
            for title, labels in candidates
            if labels
        ]


class IssuesConfig(ChangesConfig):
    exclude_labels: list[str] = Field(
        default_factory=lambda: ["duplicate", "invalid", "question", "wontfix"]
    )
    grouping: Grouping = Grouping.LABEL
    summary_labels: list[str] = Field(default_factory=lambda: ["summary", "release-summary"])
    removed_labels: list[str] = Field(default_factory=lambda: ["removed"])
    breaking_labels: list[str] = Field(
        default_factory=lambda: ["breaking", "backward-incompatible"]
    )
    deprecated_labels: list[str] = Field(default_factory=lambda: ["deprecated"])
    feature_labels: list[str] = Field(default_factory=lambda: ["feature"])
    enhancement_labels: list[str] = Field(default_factory=lambda: ["enhancement"])
    bug_labels: list[str] = Field(default_factory=lambda: ["bug"])
    security_labels: list[str] = Field(default_factory=lambda: ["security"])


class MergesConfig(ChangesConfig):
    branch: str = ""


class ContentConfig(_ConfigModel):
    release_url: str = ""

    def release_url_for(self, tag: str) -> str:
        """Render the release URL template for a tag ("" if unset)."""
        return self.release_url.replace("{tag}", tag, 1)


class RemoteConfig(_ConfigModel):
    """Remote client tuning.

    Attributes:
        concurrency: Max in-flight requests per fan-out group
        page_size: Items requested per page
        timeout: HTTP timeout in seconds
    """

    concurrency: int = Field(default=10, ge=1)
    page_size: int = Field(default=100, ge=1, le=100)
    timeout: float = Field(default=30.0, gt=0)


class ChangelogConfig(_ConfigModel):
    """Top-level configuration."""

    repo: RepoConfig = Field(default_factory=RepoConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    tags: TagsConfig = Field(default_factory=TagsConfig)
    issues: IssuesConfig = Field(default_factory=IssuesConfig)
    merges: MergesConfig = Field(default_factory=MergesConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> ChangelogConfig:
    """Load and validate the YAML configuration.

    Args:
        path: Explicit config file. When None, the first existing file of
              CONFIG_FILES in the working directory is used.

    Returns:
        A validated ChangelogConfig. Returns defaults if no file exists.
        The access token is taken from the CHANGELOG_ACCESS_TOKEN env var.

    Raises:
        ConfigError: If the YAML content is invalid or fails validation.
    """
    if path is None:
        candidates = [Path(name) for name in CONFIG_FILES]
    else:
        candidates = [Path(path)]

    raw: dict = {}
    for config_path in candidates:
        if not config_path.exists():
            continue
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Invalid config in {config_path}: expected a mapping")
        # Repository coordinates and the token are runtime-only
        raw.pop("repo", None)
        break

    try:
        config = ChangelogConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid changelog config: {exc}") from exc

    config.repo.access_token = os.environ.get(ACCESS_TOKEN_ENV_VAR, "")
    return config
