"""Change selection and attribution of issues and merges to tags.

- Issues are attributed by time: the least recent tag created at or after
  the issue was closed.
- Merges are attributed by ancestry: the least recent tag whose history
  contains the landing commit.

Items that no tag contains yet go to the future tag when one was
requested, and are left out otherwise. Both maps are sparse: a tag name is
a key only if at least one item was attributed to it.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from release_changelog.config import ChangesConfig, Selection
from release_changelog.logging_config import get_logger
from release_changelog.revisions import CommitIndex
from release_changelog.schemas import Change, Issue, Merge, Tag, has_any_label

logger = get_logger(__name__)

ChangeT = TypeVar("ChangeT", bound=Change)

IssueMap = dict[str, list[Issue]]
MergeMap = dict[str, list[Merge]]


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def select_changes(items: Sequence[ChangeT], config: ChangesConfig) -> list[ChangeT]:
    """Filter issues or merges by the selection policy and label filters.

    NONE drops everything. ALL keeps unlabeled items and the labeled items
    passing the include/exclude filters. LABELED keeps only labeled items
    passing the filters.
    """
    if config.selection == Selection.NONE:
        return []

    include = config.include_labels
    exclude = config.exclude_labels

    def keep(item: ChangeT) -> bool:
        if not item.labels:
            return config.selection == Selection.ALL
        if include and not has_any_label(item, include):
            return False
        if exclude and has_any_label(item, exclude):
            return False
        return True

    return [item for item in items if keep(item)]


# ---------------------------------------------------------------------------
# Attribution
# ---------------------------------------------------------------------------


def future_tag_of(new_tags: Sequence[Tag]) -> Tag | None:
    """The requested future tag, which is always the first new tag."""
    if new_tags and new_tags[0].is_future():
        return new_tags[0]
    return None


def resolve_issue_map(
    issues: Sequence[Issue],
    sorted_tags: Sequence[Tag],
    future_tag: Tag | None = None,
) -> IssueMap:
    """Attribute each issue to the least recent tag at or after its close time.

    Args:
        issues: Closed issues
        sorted_tags: Existing tags, most recent first
        future_tag: Receives issues closed after every tag
    """
    issue_map: IssueMap = {}
    dropped = 0

    for issue in issues:
        target = next((t for t in reversed(sorted_tags) if t.time >= issue.time), None)
        if target is None:
            target = future_tag
        if target is None:
            dropped += 1
            continue
        issue_map.setdefault(target.name, []).append(issue)

    logger.debug("issues_attributed", tags=len(issue_map), dropped=dropped)
    return issue_map


def resolve_merge_map(
    merges: Sequence[Merge],
    commit_index: CommitIndex,
    future_tag: Tag | None = None,
) -> MergeMap:
    """Attribute each merge to the least recent tag containing its landing commit.

    Merges whose landing commit is not in the index are left out. Merges
    only reachable from the branch go to ``future_tag`` if given.
    """
    merge_map: MergeMap = {}
    dropped = 0

    for merge in merges:
        membership = commit_index.get(merge.landing_commit.hash)
        if membership is None:
            dropped += 1
            continue

        tag_name = membership.earliest_tag()
        if tag_name is None and future_tag is not None:
            tag_name = future_tag.name
        if tag_name is None:
            dropped += 1
            continue
        merge_map.setdefault(tag_name, []).append(merge)

    logger.debug("merges_attributed", tags=len(merge_map), dropped=dropped)
    return merge_map
