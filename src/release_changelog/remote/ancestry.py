"""Commit ancestry resolution.

The ancestor set of a commit is the commit itself plus every commit
reachable by following parent links. It is resolved with an explicit work
stack and a visited set keyed by commit hash, so history depth never
touches the interpreter's recursion limit and shared history (merge
commits, diamonds) is walked once per call.

Commits are looked up through the run's CommitCache first. Resolving a
second tag that shares history with an earlier one issues no remote calls
for the shared ancestors; the walk itself is still repeated per call.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from release_changelog.logging_config import get_logger
from release_changelog.remote.cache import CommitCache, CommitRecord
from release_changelog.schemas import Commit

logger = get_logger(__name__)

CommitFetcher = Callable[[str], Awaitable[CommitRecord]]


class AncestryResolver:
    """Resolves ancestor sets, reading commits through a cache.

    Usage:
        resolver = AncestryResolver(cache, fetch_commit=client.fetch_commit)
        commits = await resolver.ancestors("c414d10")
    """

    def __init__(self, cache: CommitCache, fetch_commit: CommitFetcher) -> None:
        """Initialize the resolver.

        Args:
            cache: The run's commit cache, shared with other fetches
            fetch_commit: Coroutine fetching one commit (with its parent
                          hashes) from the remote; called only on cache misses
        """
        self._cache = cache
        self._fetch_commit = fetch_commit

    async def get_commit(self, commit_hash: str) -> CommitRecord:
        """Return a commit from the cache, fetching and caching it on a miss."""
        record, found = self._cache.load(commit_hash)
        if found:
            return record

        record = await self._fetch_commit(commit_hash)
        self._cache.save(record.hash, record)
        return record

    async def ancestors(self, start_hash: str) -> list[Commit]:
        """Return the ancestor set of a commit, the commit itself included.

        The result holds each commit once, in depth-first discovery order
        starting with ``start_hash``.

        Raises:
            RemoteFetchError: If any commit cannot be fetched. No partial
                ancestry is returned.
        """
        visited: set[str] = set()
        stack = [start_hash]
        commits: list[Commit] = []

        while stack:
            commit_hash = stack.pop()
            if commit_hash in visited:
                continue
            visited.add(commit_hash)

            record = await self.get_commit(commit_hash)
            commits.append(record.to_commit())
            # Reversed so the first parent is walked first
            stack.extend(p for p in reversed(record.parents) if p not in visited)

        logger.debug("ancestors_resolved", commit=start_hash, count=len(commits))
        return commits
