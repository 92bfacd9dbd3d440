"""Shared fixtures: a small repository with three releases.

History on main, oldest first (each commit's parent is the one before):

    c1 (root) - c2 [v0.1.1] - c3 - c4 [v0.1.2] - c5 - c6 [v0.1.3] - c7 (main)

c3 is the landing commit of merge #20, c5 of merge #21 and c7 of merge #22
(not released yet). Issues #10, #11 and #12 were closed at the times of
v0.1.2, v0.1.3 and after every tag respectively.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from release_changelog.logging_config import setup_logging
from release_changelog.remote.base import InMemoryRemoteRepository
from release_changelog.remote.cache import CommitRecord
from release_changelog.schemas import Commit, Issue, Merge, Tag, User

T0 = datetime(2020, 10, 1, 12, 0, tzinfo=UTC)

WEB_URL = "https://github.com/octocat/Hello-World"


def at(days: int) -> datetime:
    """A timestamp ``days`` days after T0."""
    return T0 + timedelta(days=days)


def make_commits() -> list[CommitRecord]:
    hashes = ["c1", "c2", "c3", "c4", "c5", "c6", "c7"]
    commits = []
    for i, h in enumerate(hashes):
        parents = (hashes[i - 1],) if i else ()
        commits.append(CommitRecord(hash=h, time=at(i), parents=parents))
    return commits


def make_tag(name: str, commit: CommitRecord) -> Tag:
    return Tag(
        name=name,
        time=commit.time,
        commit=commit.to_commit(),
        web_url=f"{WEB_URL}/tree/{name}",
    )


OCTOCAT = User(name="The Octocat", username="octocat", web_url="https://github.com/octocat")
OCTODOG = User(name="The Octodog", username="octodog", web_url="https://github.com/octodog")


def make_issue(number: int, time: datetime, labels: tuple[str, ...] = (), milestone: str = "") -> Issue:
    return Issue(
        number=number,
        title=f"Issue {number}",
        labels=frozenset(labels),
        milestone=milestone,
        time=time,
        author=OCTOCAT,
        closer=OCTOCAT,
        web_url=f"{WEB_URL}/issues/{number}",
    )


def make_merge(
    number: int,
    commit: CommitRecord | Commit,
    labels: tuple[str, ...] = (),
    milestone: str = "",
) -> Merge:
    return Merge(
        number=number,
        title=f"Merge {number}",
        labels=frozenset(labels),
        milestone=milestone,
        time=commit.time,
        author=OCTOCAT,
        merger=OCTODOG,
        landing_commit=Commit(hash=commit.hash, time=commit.time),
        web_url=f"{WEB_URL}/pull/{number}",
    )



@pytest.fixture(scope="session", autouse=True)
def quiet_logging() -> None:
    """Send logs to stderr at WARNING so stdout only carries changelog output."""
    setup_logging(log_level="WARNING")


@pytest.fixture
def commits() -> dict[str, CommitRecord]:
    return {c.hash: c for c in make_commits()}


@pytest.fixture
def tags(commits: dict[str, CommitRecord]) -> list[Tag]:
    """Tags sorted most recent first."""
    return [
        make_tag("v0.1.3", commits["c6"]),
        make_tag("v0.1.2", commits["c4"]),
        make_tag("v0.1.1", commits["c2"]),
    ]


@pytest.fixture
def issues(commits: dict[str, CommitRecord]) -> list[Issue]:
    return [
        make_issue(12, at(7), labels=("enhancement",)),
        make_issue(11, commits["c6"].time, labels=("bug",)),
        make_issue(10, commits["c4"].time, labels=("bug",), milestone="v0.1"),
    ]


@pytest.fixture
def merges(commits: dict[str, CommitRecord]) -> list[Merge]:
    return [
        make_merge(22, commits["c7"]),
        make_merge(21, commits["c5"], labels=("feature",)),
        make_merge(20, commits["c3"]),
    ]


@pytest.fixture
def repo(
    commits: dict[str, CommitRecord],
    tags: list[Tag],
    issues: list[Issue],
    merges: list[Merge],
) -> InMemoryRemoteRepository:
    return InMemoryRemoteRepository(
        commits=commits.values(),
        branches={"main": "c7"},
        tags=tags,
        issues=issues,
        merges=merges,
        web_url=WEB_URL,
    )
