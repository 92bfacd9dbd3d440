"""Revision index: which branch and which tags reach each commit.

The index maps a commit hash to its RevisionMembership. Tags are visited
most recent first and appended, so every membership lists its tags most
recent first and the last entry is the earliest release containing the
commit.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, Field

from release_changelog.logging_config import get_logger
from release_changelog.remote.base import RemoteRepository
from release_changelog.schemas import Branch, Tag

logger = get_logger(__name__)


class RevisionMembership(BaseModel):
    """Branch and tags whose ancestor sets contain one commit.

    Attributes:
        branch: Name of the branch reaching the commit, empty if none
        tags: Names of the tags reaching the commit, most recent first
    """

    branch: str = ""
    tags: list[str] = Field(default_factory=list)

    def earliest_tag(self) -> str | None:
        """The least recent tag containing the commit, if any."""
        return self.tags[-1] if self.tags else None


CommitIndex = dict[str, RevisionMembership]


async def build_commit_index(
    remote: RemoteRepository,
    branch: Branch,
    sorted_tags: Sequence[Tag],
) -> CommitIndex:
    """Build the revision index for a branch and a set of tags.

    Args:
        remote: Source of ancestor sets
        branch: The branch whose history is indexed
        sorted_tags: Tags, most recent first; future tags contribute nothing

    Raises:
        RemoteFetchError: If any ancestor set cannot be fetched
    """
    index: CommitIndex = {}

    logger.debug("indexing_branch", branch=branch.name)
    for commit in await remote.fetch_parent_commits(branch.head_commit.hash):
        index.setdefault(commit.hash, RevisionMembership()).branch = branch.name

    for tag in sorted_tags:
        if tag.is_future():
            continue
        logger.debug("indexing_tag", tag=tag.name)
        for commit in await remote.fetch_parent_commits(tag.commit.hash):
            index.setdefault(commit.hash, RevisionMembership()).tags.append(tag.name)

    logger.info("commit_index_built", commits=len(index), tags=len(sorted_tags))
    return index
