"""Tag pre-filtering and tag window resolution.

Given every tag on the remote (sorted most recent first) and the releases a
changelog already records, decide which tags need a new release section.

Steps, in order:
1. Drop tags the changelog already has a section for.
2. ``from_tag`` keeps the most recent end down to and including that tag.
3. ``to_tag`` drops every tag more recent than that tag.
4. ``future_tag`` prepends a not-yet-created tag for unreleased changes.

An empty result is not an error; it means the changelog is up to date.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from release_changelog.config import TagsConfig
from release_changelog.errors import ConfigError, FutureTagCollisionError, UnknownTagError
from release_changelog.logging_config import get_logger
from release_changelog.remote.base import RemoteRepository
from release_changelog.schemas import (
    Changelog,
    Tag,
    exclude_tags,
    exclude_tags_regex,
    find_tag,
    sort_tags,
    tag_index,
    tag_names,
)

logger = get_logger(__name__)


def prefilter_tags(tags: Sequence[Tag], config: TagsConfig) -> list[Tag]:
    """Sort tags most recent first and drop the excluded ones.

    Raises:
        ConfigError: If ``exclude_regex`` is not a valid regular expression
    """
    sorted_tags = sort_tags(tags)

    if config.exclude:
        sorted_tags = exclude_tags(sorted_tags, config.exclude)

    if config.exclude_regex:
        try:
            regex = re.compile(config.exclude_regex)
        except re.error as exc:
            raise ConfigError(
                f"Invalid exclude-tags regex {config.exclude_regex!r}: {exc}"
            ) from exc
        sorted_tags = exclude_tags_regex(sorted_tags, regex)

    logger.debug("tags_filtered", count=len(sorted_tags), tags=tag_names(sorted_tags))
    return sorted_tags


def resolve_tags(
    sorted_tags: Sequence[Tag],
    changelog: Changelog,
    remote: RemoteRepository,
    from_tag: str = "",
    to_tag: str = "",
    future_tag: str = "",
) -> list[Tag]:
    """Select the tags that need a new release section.

    Args:
        sorted_tags: All candidate tags, most recent first
        changelog: The changelog as already recorded
        remote: Used to build the future tag
        from_tag: Keep tags from the most recent one down to this one
        to_tag: Keep tags from this one down to the least recent one
        future_tag: Name of a tag that does not exist yet

    Returns:
        The new tags, most recent first (the future tag, if any, first)

    Raises:
        UnknownTagError: If ``from_tag`` or ``to_tag`` is not a candidate
        FutureTagCollisionError: If ``future_tag`` names an existing tag
    """
    existing = {r.tag_name for r in changelog.existing}
    new_tags = [t for t in sorted_tags if t.name not in existing]

    if from_tag:
        i = tag_index(new_tags, from_tag)
        if i == -1:
            raise UnknownTagError("from-tag", from_tag, tag_names(new_tags))
        new_tags = new_tags[: i + 1]

    if to_tag:
        i = tag_index(new_tags, to_tag)
        if i == -1:
            raise UnknownTagError("to-tag", to_tag, tag_names(new_tags))
        new_tags = new_tags[i:]

    if future_tag:
        if find_tag(sorted_tags, future_tag) is not None:
            raise FutureTagCollisionError(future_tag)
        new_tags.insert(0, remote.future_tag(future_tag))

    logger.info("tags_resolved", new_tags=tag_names(new_tags))
    return new_tags
