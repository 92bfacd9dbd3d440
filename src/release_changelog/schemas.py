"""Pydantic models for the data flowing through changelog generation.

These schemas are the single source of truth for what the remote layer
produces and what the release assembler hands to the changelog renderer:
- Repository data fetched from a remote provider (commits, branches, tags)
- Changes to attribute (closed issues and merged pull/merge requests)
- The release records a changelog is made of

Key design decisions:
- Remote entities are frozen. They are created once by the remote layer and
  shared freely between caches and pipeline stages without copying.
- Tag collections are kept sorted by time, most recent first. The helpers
  at the bottom of this module preserve that order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Repository Entities
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A user on the remote platform.

    Attributes:
        name: Display name (may be empty)
        email: Public email address (may be empty)
        username: Login name on the platform
        web_url: Link to the user's profile page
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    username: str = ""
    web_url: str = ""


class Commit(BaseModel):
    """A commit identified by its hash.

    A zero commit (empty hash, no time) stands for a commit that does not
    exist yet, which is what a future tag points to.
    """

    model_config = ConfigDict(frozen=True)

    hash: str = ""
    time: datetime | None = None

    def is_zero(self) -> bool:
        return not self.hash and self.time is None


class Branch(BaseModel):
    """A branch and the commit at its head."""

    model_config = ConfigDict(frozen=True)

    name: str
    head_commit: Commit = Field(default_factory=Commit)


class Tag(BaseModel):
    """A tag, representing a release.

    Two tags are the same tag when their names match, regardless of the
    commit or time they carry.

    Attributes:
        name: Tag name (e.g., "v0.1.0")
        time: Time of the tagged commit; ordering key for tag collections
        commit: The tagged commit (zero for a future tag)
        web_url: Link to the tree at this tag
    """

    model_config = ConfigDict(frozen=True)

    name: str
    time: datetime
    commit: Commit = Field(default_factory=Commit)
    web_url: str = ""

    def is_future(self) -> bool:
        """Whether this tag does not exist yet on the remote."""
        return self.commit.is_zero()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tag):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


# ---------------------------------------------------------------------------
# Changes
# ---------------------------------------------------------------------------


class Change(BaseModel):
    """Fields shared by closed issues and merged pull/merge requests.

    Attributes:
        number: Issue or pull/merge request number
        title: Title of the change
        labels: Labels attached to the change
        milestone: Milestone title, empty if none
        time: When the issue was closed or the change landed
        author: Who opened the change
        web_url: Link to the change on the platform
    """

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    labels: frozenset[str] = frozenset()
    milestone: str = ""
    time: datetime
    author: User = Field(default_factory=User)
    web_url: str = ""


class Issue(Change):
    """A closed issue; ``time`` is its close time."""

    closer: User = Field(default_factory=User)


class Merge(Change):
    """A merged change; ``time`` is when it landed on the target branch.

    Attributes:
        merger: Who merged the change
        landing_commit: The commit created by merging
    """

    merger: User = Field(default_factory=User)
    landing_commit: Commit = Field(default_factory=Commit)


# ---------------------------------------------------------------------------
# Changelog Records
# ---------------------------------------------------------------------------


class IssueGroup(BaseModel):
    """A titled group of issues within a release."""

    title: str
    issues: list[Issue] = Field(default_factory=list)


class MergeGroup(BaseModel):
    """A titled group of merged changes within a release."""

    title: str
    merges: list[Merge] = Field(default_factory=list)


class Release(BaseModel):
    """A single release section of a changelog.

    Attributes:
        tag_name: Name of the tag this release was cut from
        tag_url: Link to the tree at this tag
        tag_time: Time of the tag
        release_url: Optional external link to the release artifacts
        compare_url: Link comparing this release with the previous one
        issue_groups: Closed issues attributed to this release, grouped
        merge_groups: Merged changes attributed to this release, grouped
    """

    tag_name: str
    tag_url: str = ""
    tag_time: datetime | None = None
    release_url: str = ""
    compare_url: str = ""
    issue_groups: list[IssueGroup] = Field(default_factory=list)
    merge_groups: list[MergeGroup] = Field(default_factory=list)


class Changelog(BaseModel):
    """The changelog of a repository.

    Attributes:
        title: Changelog title
        existing: Releases already recorded, most recent first
        new: Releases computed by this run, most recent first
    """

    title: str = "Changelog"
    existing: list[Release] = Field(default_factory=list)
    new: list[Release] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Collection Helpers
# ---------------------------------------------------------------------------

ChangeT = TypeVar("ChangeT", bound=Change)


def sort_tags(tags: Iterable[Tag]) -> list[Tag]:
    """Return the tags sorted from the most recent to the least recent."""
    return sorted(tags, key=lambda t: t.time, reverse=True)


def sort_changes(items: Iterable[ChangeT]) -> list[ChangeT]:
    """Return issues or merges sorted from the most recent to the least recent."""
    return sorted(items, key=lambda c: c.time, reverse=True)


def tag_index(tags: Sequence[Tag], name: str) -> int:
    """Return the index of the tag with the given name, or -1 if not found."""
    for i, tag in enumerate(tags):
        if tag.name == name:
            return i
    return -1


def find_tag(tags: Iterable[Tag], name: str) -> Tag | None:
    for tag in tags:
        if tag.name == name:
            return tag
    return None


def tag_names(tags: Iterable[Tag]) -> list[str]:
    return [t.name for t in tags]


def exclude_tags(tags: Iterable[Tag], names: Iterable[str]) -> list[Tag]:
    """Drop the tags with the given names, keeping the order of the rest."""
    excluded = set(names)
    return [t for t in tags if t.name not in excluded]


def exclude_tags_regex(tags: Iterable[Tag], pattern: str | re.Pattern[str]) -> list[Tag]:
    """Drop the tags whose names match the given regular expression."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    return [t for t in tags if not regex.search(t.name)]


def has_any_label(change: Change, labels: Iterable[str]) -> bool:
    return not change.labels.isdisjoint(labels)


def milestones(items: Iterable[Change]) -> list[str]:
    """Distinct non-empty milestones of the given changes, in discovery order."""
    seen: dict[str, None] = {}
    for item in items:
        if item.milestone:
            seen.setdefault(item.milestone, None)
    return list(seen)
