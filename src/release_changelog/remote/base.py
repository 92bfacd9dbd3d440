"""Remote repository contract and an in-memory implementation.

The generator talks to a hosting platform only through the
RemoteRepository protocol. Provider quirks (REST vs GraphQL, page-count
headers, rate limits, URL layouts) stay behind it; the generator never
branches on which provider it is using.

Design notes:
- Uses a Protocol so the generator doesn't depend on a concrete client
  (makes testing with in-memory data easy)
- Every fetch is a coroutine; cancellation of the calling task is the
  cancellation signal for in-flight remote calls
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol

from release_changelog.errors import PermissionDeniedError, RemoteFetchError
from release_changelog.remote.ancestry import AncestryResolver
from release_changelog.remote.cache import CommitCache, CommitRecord
from release_changelog.schemas import (
    Branch,
    Commit,
    Issue,
    Merge,
    Tag,
    sort_changes,
)

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class RemoteRepository(Protocol):
    """Protocol for fetching the data a changelog is generated from."""

    def future_tag(self, name: str) -> Tag:
        """Build a tag that does not exist yet (zero commit, current time)."""
        ...

    def compare_url(self, base: str, head: str) -> str:
        """Return a web URL comparing two revisions (tag names or hashes)."""
        ...

    async def check_permissions(self) -> None:
        """Ensure the credential can read everything needed.

        Raises:
            PermissionDeniedError: If a required scope is missing
        """
        ...

    async def fetch_first_commit(self) -> Commit:
        """Fetch the initial commit of the repository."""
        ...

    async def fetch_branch(self, name: str) -> Branch:
        ...

    async def fetch_default_branch(self) -> Branch:
        ...

    async def fetch_tags(self) -> list[Tag]:
        """Fetch all tags with their commits resolved. Order is unspecified."""
        ...

    async def fetch_issues_and_merges(
        self, since: datetime | None
    ) -> tuple[list[Issue], list[Merge]]:
        """Fetch closed issues and merged changes updated since a time.

        Returns:
            Issues and merges, each sorted from the most recent to the least
            recent. ``since=None`` fetches from the beginning.
        """
        ...

    async def fetch_parent_commits(self, commit_hash: str) -> list[Commit]:
        """Fetch the ancestor set of a commit, the commit itself included."""
        ...

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        ...


# ---------------------------------------------------------------------------
# In-memory Implementation
# ---------------------------------------------------------------------------


class InMemoryRemoteRepository:
    """Remote repository backed by in-memory data.

    Use this in tests and offline runs when you don't want to hit a real
    platform. Ancestry is resolved through the same AncestryResolver and
    CommitCache as real providers, and ``commit_fetches`` counts the
    simulated remote commit lookups.

    Usage:
        repo = InMemoryRemoteRepository(
            commits=[CommitRecord(hash="a1", time=t1)],
            branches={"main": "a1"},
            tags=[Tag(name="v0.1.0", time=t1, commit=Commit(hash="a1", time=t1))],
        )
        branch = await repo.fetch_default_branch()
    """

    def __init__(
        self,
        commits: Iterable[CommitRecord] = (),
        branches: dict[str, str] | None = None,
        default_branch: str = "main",
        tags: Iterable[Tag] = (),
        issues: Iterable[Issue] = (),
        merges: Iterable[Merge] = (),
        web_url: str = "https://example.com/octocat/hello-world",
        authorized: bool = True,
    ) -> None:
        """Initialize with predefined repository data.

        Args:
            commits: Commit graph; parents are given by hash
            branches: Branch name -> head commit hash
            default_branch: Name returned by fetch_default_branch
            tags: Existing tags
            issues: Closed issues
            merges: Merged changes
            web_url: Base URL used for tag and compare links
            authorized: When False, check_permissions fails
        """
        self._commits = {c.hash: c for c in commits}
        self._branches = dict(branches or {})
        self._default_branch = default_branch
        self._tags = list(tags)
        self._issues = list(issues)
        self._merges = list(merges)
        self._web_url = web_url.rstrip("/")
        self._authorized = authorized
        self.commit_fetches = 0
        self._resolver = AncestryResolver(CommitCache(), fetch_commit=self._fetch_commit)

    async def _fetch_commit(self, commit_hash: str) -> CommitRecord:
        self.commit_fetches += 1
        try:
            return self._commits[commit_hash]
        except KeyError as exc:
            raise RemoteFetchError(f"commit not found: {commit_hash}") from exc

    def future_tag(self, name: str) -> Tag:
        return Tag(name=name, time=datetime.now(UTC), web_url=f"{self._web_url}/tree/{name}")

    def compare_url(self, base: str, head: str) -> str:
        return f"{self._web_url}/compare/{base}...{head}"

    async def check_permissions(self) -> None:
        if not self._authorized:
            raise PermissionDeniedError("access token is missing the required scope: repo")

    async def fetch_first_commit(self) -> Commit:
        roots = [c for c in self._commits.values() if not c.parents]
        if not roots:
            raise RemoteFetchError("repository has no root commit")
        root = min(roots, key=lambda c: c.time or datetime.min.replace(tzinfo=UTC))
        return root.to_commit()

    async def fetch_branch(self, name: str) -> Branch:
        try:
            head = self._branches[name]
        except KeyError as exc:
            raise RemoteFetchError(f"branch not found: {name}") from exc
        record = await self._resolver.get_commit(head)
        return Branch(name=name, head_commit=record.to_commit())

    async def fetch_default_branch(self) -> Branch:
        return await self.fetch_branch(self._default_branch)

    async def fetch_tags(self) -> list[Tag]:
        return list(self._tags)

    async def fetch_issues_and_merges(
        self, since: datetime | None
    ) -> tuple[list[Issue], list[Merge]]:
        issues = [i for i in self._issues if since is None or i.time >= since]
        merges = [m for m in self._merges if since is None or m.time >= since]
        return sort_changes(issues), sort_changes(merges)

    async def fetch_parent_commits(self, commit_hash: str) -> list[Commit]:
        return await self._resolver.ancestors(commit_hash)

    async def aclose(self) -> None:
        pass
