"""Release assembly: one Release per new tag, with grouped changes.

Grouping policies:
- SIMPLE: every attributed item goes to the catch-all group
- MILESTONE: one "Milestone {name}" group per milestone, in discovery order
- LABEL: one group per configured label set, in configured order; an item
  joins the first group whose labels it carries and no later one

Items no group claimed form a final catch-all group ("Closed Issues" for
issues, "Merged Changes" for merges), so the groups of a release always
partition its attributed items exactly.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from release_changelog.config import ChangesConfig, ContentConfig, Grouping
from release_changelog.logging_config import get_logger
from release_changelog.partition import IssueMap, MergeMap
from release_changelog.remote.base import RemoteRepository
from release_changelog.schemas import (
    Change,
    IssueGroup,
    MergeGroup,
    Release,
    Tag,
    has_any_label,
    milestones,
)

logger = get_logger(__name__)

ChangeT = TypeVar("ChangeT", bound=Change)

ISSUES_CATCH_ALL = "Closed Issues"
MERGES_CATCH_ALL = "Merged Changes"


def group_changes(
    items: Sequence[ChangeT],
    config: ChangesConfig,
    catch_all: str,
) -> list[tuple[str, list[ChangeT]]]:
    """Split items into titled groups according to the grouping policy.

    Returns:
        ``(title, items)`` pairs in rendering order. Empty groups are
        omitted; item order within a group follows ``items``.
    """
    groups: list[tuple[str, list[ChangeT]]] = []
    unselected = list(items)

    def take(title: str, predicate: Callable[[ChangeT], bool]) -> None:
        nonlocal unselected
        selected = [item for item in unselected if predicate(item)]
        unselected = [item for item in unselected if not predicate(item)]
        if selected:
            groups.append((title, selected))

    if config.grouping == Grouping.MILESTONE:
        for milestone in milestones(items):
            take(f"Milestone {milestone}", lambda item, m=milestone: item.milestone == m)

    elif config.grouping == Grouping.LABEL:
        for group in config.label_groups():
            take(group.title, lambda item, labels=group.labels: has_any_label(item, labels))

    if unselected:
        groups.append((catch_all, unselected))

    return groups


def resolve_releases(
    new_tags: Sequence[Tag],
    base_revision: str,
    issue_map: IssueMap,
    merge_map: MergeMap,
    remote: RemoteRepository,
    issues_config: ChangesConfig,
    merges_config: ChangesConfig,
    content_config: ContentConfig | None = None,
) -> list[Release]:
    """Build one release per new tag, most recent first.

    Args:
        new_tags: Tags needing a release section, most recent first
        base_revision: Revision the oldest new tag is compared with (the most
                       recent existing release, or the first commit)
        issue_map: Issues attributed per tag name
        merge_map: Merges attributed per tag name
        remote: Builds compare URLs
        issues_config: Grouping policy for issues
        merges_config: Grouping policy for merges
        content_config: Release URL template
    """
    content_config = content_config or ContentConfig()
    releases: list[Release] = []

    for i, tag in enumerate(new_tags):
        previous = new_tags[i + 1].name if i + 1 < len(new_tags) else base_revision

        issue_groups = [
            IssueGroup(title=title, issues=issues)
            for title, issues in group_changes(
                issue_map.get(tag.name, []), issues_config, ISSUES_CATCH_ALL
            )
        ]
        merge_groups = [
            MergeGroup(title=title, merges=merges)
            for title, merges in group_changes(
                merge_map.get(tag.name, []), merges_config, MERGES_CATCH_ALL
            )
        ]

        releases.append(
            Release(
                tag_name=tag.name,
                tag_url=tag.web_url,
                tag_time=tag.time,
                release_url=content_config.release_url_for(tag.name),
                compare_url=remote.compare_url(previous, tag.name),
                issue_groups=issue_groups,
                merge_groups=merge_groups,
            )
        )
        logger.debug(
            "release_assembled",
            tag=tag.name,
            issue_groups=len(issue_groups),
            merge_groups=len(merge_groups),
        )

    return releases
