"""Tests for tag pre-filtering and tag window resolution.

Run with: pytest tests/test_tags.py -v
"""

from __future__ import annotations

import pytest

from conftest import at
from release_changelog.config import TagsConfig
from release_changelog.errors import ConfigError, FutureTagCollisionError, UnknownTagError
from release_changelog.remote.base import InMemoryRemoteRepository
from release_changelog.schemas import Changelog, Commit, Release, Tag, tag_names
from release_changelog.tags import prefilter_tags, resolve_tags

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def tag(name: str, day: int) -> Tag:
    return Tag(name=name, time=at(day), commit=Commit(hash=f"h-{name}", time=at(day)))


@pytest.fixture
def v3_v2_v1() -> list[Tag]:
    return [tag("v3", 3), tag("v2", 2), tag("v1", 1)]


@pytest.fixture
def with_v1() -> Changelog:
    return Changelog(existing=[Release(tag_name="v1", tag_time=at(1))])


@pytest.fixture
def remote() -> InMemoryRemoteRepository:
    return InMemoryRemoteRepository(web_url="https://github.com/octocat/Hello-World")


# ---------------------------------------------------------------------------
# Window resolution
# ---------------------------------------------------------------------------


class TestResolveTags:
    def test_existing_releases_are_excluded(self, v3_v2_v1, with_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, with_v1, remote)
        assert tag_names(new) == ["v3", "v2"]

    def test_from_tag_keeps_recent_end(self, v3_v2_v1, with_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, with_v1, remote, from_tag="v2")
        assert tag_names(new) == ["v3", "v2"]

    def test_to_tag_drops_more_recent_tags(self, v3_v2_v1, with_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, with_v1, remote, to_tag="v2")
        assert tag_names(new) == ["v2"]

    def test_from_equals_to_is_single_tag(self, v3_v2_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, Changelog(), remote, from_tag="v2", to_tag="v2")
        assert tag_names(new) == ["v2"]

    def test_from_older_than_to(self, v3_v2_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, Changelog(), remote, from_tag="v2", to_tag="v3")
        assert tag_names(new) == ["v3", "v2"]

    def test_from_and_to_window(self, v3_v2_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, Changelog(), remote, from_tag="v1", to_tag="v2")
        assert tag_names(new) == ["v2", "v1"]

    def test_to_tag_already_in_changelog_is_unknown(self, v3_v2_v1, with_v1, remote) -> None:
        with pytest.raises(UnknownTagError) as exc_info:
            resolve_tags(v3_v2_v1, with_v1, remote, from_tag="v3", to_tag="v1")

        assert exc_info.value.option == "to-tag"
        assert exc_info.value.choices == ["v3"]

    def test_unknown_from_tag_lists_choices(self, v3_v2_v1, with_v1, remote) -> None:
        with pytest.raises(UnknownTagError, match=r"from-tag 'v9' not found") as exc_info:
            resolve_tags(v3_v2_v1, with_v1, remote, from_tag="v9")

        assert exc_info.value.choices == ["v3", "v2"]

    def test_to_tag_excluded_by_from_truncation(self, v3_v2_v1, remote) -> None:
        with pytest.raises(UnknownTagError):
            resolve_tags(v3_v2_v1, Changelog(), remote, from_tag="v3", to_tag="v2")

    def test_future_tag_is_prepended(self, v3_v2_v1, with_v1, remote) -> None:
        new = resolve_tags(v3_v2_v1, with_v1, remote, future_tag="v4")

        assert tag_names(new) == ["v4", "v3", "v2"]
        assert new[0].is_future()
        assert new[0].web_url == "https://github.com/octocat/Hello-World/tree/v4"

    def test_future_tag_collision(self, v3_v2_v1, with_v1, remote) -> None:
        with pytest.raises(FutureTagCollisionError):
            resolve_tags(v3_v2_v1, with_v1, remote, future_tag="v3")

    def test_future_tag_collision_ignores_window(self, v3_v2_v1, with_v1, remote) -> None:
        with pytest.raises(FutureTagCollisionError):
            resolve_tags(v3_v2_v1, with_v1, remote, to_tag="v2", future_tag="v3")

    def test_future_tag_collides_with_recorded_release(self, v3_v2_v1, with_v1, remote) -> None:
        with pytest.raises(FutureTagCollisionError):
            resolve_tags(v3_v2_v1, with_v1, remote, future_tag="v1")

    def test_nothing_new_is_empty(self, v3_v2_v1, remote) -> None:
        changelog = Changelog(existing=[Release(tag_name=t.name) for t in v3_v2_v1])
        assert resolve_tags(v3_v2_v1, changelog, remote) == []

    def test_only_future_tag_when_up_to_date(self, v3_v2_v1, remote) -> None:
        changelog = Changelog(existing=[Release(tag_name=t.name) for t in v3_v2_v1])
        new = resolve_tags(v3_v2_v1, changelog, remote, future_tag="v4")
        assert tag_names(new) == ["v4"]


# ---------------------------------------------------------------------------
# Pre-filtering
# ---------------------------------------------------------------------------


class TestPrefilterTags:
    def test_sorts_most_recent_first(self, v3_v2_v1) -> None:
        result = prefilter_tags(list(reversed(v3_v2_v1)), TagsConfig())
        assert tag_names(result) == ["v3", "v2", "v1"]

    def test_exclude_names(self, v3_v2_v1) -> None:
        result = prefilter_tags(v3_v2_v1, TagsConfig(exclude=["v2"]))
        assert tag_names(result) == ["v3", "v1"]

    def test_exclude_regex(self) -> None:
        tags = [tag("v2.0.0", 4), tag("v2.0.0-rc.1", 3), tag("v1.0.0", 1)]
        result = prefilter_tags(tags, TagsConfig(exclude_regex=r"-rc\.\d+$"))
        assert tag_names(result) == ["v2.0.0", "v1.0.0"]

    def test_invalid_regex(self, v3_v2_v1) -> None:
        with pytest.raises(ConfigError, match="Invalid exclude-tags regex"):
            prefilter_tags(v3_v2_v1, TagsConfig(exclude_regex="v[0-9"))
