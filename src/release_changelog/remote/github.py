"""GitHub API client implementing the RemoteRepository protocol.

This module fetches everything the changelog generator needs from GitHub's
REST API:
- Repository metadata (default branch) and branches
- Tags and the commits they point to
- Commits and their parents, for ancestry resolution
- Closed issues and merged pull requests, with the events that closed or
  merged them and the users involved

Design notes:
- Uses httpx for async HTTP requests; one AsyncClient per repository
  instance, closed with ``aclose()`` or ``async with``
- Listings are paginated: page 1 reveals the last page through the Link
  header, the remaining pages are fetched concurrently (see remote.fetch)
- Commits and users are cached per instance, so a commit shared by many
  tags or a user who authored many changes is fetched once
- No retries: any failed call raises RemoteFetchError and fails the run

GitHub API docs: https://docs.github.com/en/rest
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

import httpx

from release_changelog.errors import PermissionDeniedError, RemoteFetchError
from release_changelog.logging_config import get_logger
from release_changelog.remote.ancestry import AncestryResolver
from release_changelog.remote.cache import CommitCache, CommitRecord, FetchCache, UserCache
from release_changelog.remote.fetch import FanOut, Page, fetch_all_pages
from release_changelog.schemas import (
    Branch,
    Commit,
    Issue,
    Merge,
    Tag,
    User,
    sort_changes,
)

logger = get_logger(__name__)

REQUIRED_SCOPE = "repo"


class GitHubRepository:
    """Real GitHub API client using httpx.

    Usage:
        async with GitHubRepository("octocat", "Hello-World", token="ghp_...") as repo:
            tags = await repo.fetch_tags()
    """

    BASE_URL = "https://api.github.com"
    WEB_URL = "https://github.com"

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        concurrency: int = 10,
        page_size: int = 100,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            token: GitHub access token. Falls back to the
                   CHANGELOG_ACCESS_TOKEN environment variable if not provided.
            concurrency: Max in-flight requests per fan-out group
            page_size: Items per page for listings (GitHub caps it at 100)
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (e.g., httpx.MockTransport
                       in tests)
        """
        self.owner = owner
        self.repo = repo
        self._token = token or os.environ.get("CHANGELOG_ACCESS_TOKEN", "")
        self._page_size = page_size
        headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._fan_out = FanOut(limit=concurrency)
        self._commits = CommitCache()
        self._users = UserCache()
        self._resolver = AncestryResolver(self._commits, fetch_commit=self._fetch_commit)

    async def __aenter__(self) -> GitHubRepository:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    # -----------------------------------------------------------------------
    # HTTP helpers
    # -----------------------------------------------------------------------

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET a resource, converting every failure into RemoteFetchError."""
        try:
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteFetchError(
                f"GitHub API returned {exc.response.status_code} for {url}: "
                f"{_error_message(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"GitHub API request to {url} failed: {exc}") from exc
        return resp

    async def _get_page(
        self,
        url: str,
        page: int,
        page_size: int,
        params: dict[str, Any] | None = None,
    ) -> Page[dict]:
        resp = await self._get(url, params={**(params or {}), "per_page": page_size, "page": page})
        last_page = _parse_page_number(_parse_link(resp.headers.get("link", ""), "last"))
        return Page(items=resp.json(), last_page=last_page or page)

    async def _fetch_commit(self, ref: str) -> CommitRecord:
        resp = await self._get(f"{self._repo_path}/commits/{ref}")
        return _to_commit_record(resp.json())

    async def _get_user(self, username: str) -> User:
        user, found = self._users.load(username)
        if found:
            return user

        resp = await self._get(f"/users/{username}")
        user = _to_user(resp.json())
        self._users.save(user.username, user)
        return user

    async def _find_event(self, number: int, name: str) -> dict | None:
        """Find the first issue event with the given name, paging sequentially."""
        url = f"{self._repo_path}/issues/{number}/events"
        page = 1
        while True:
            resp = await self._get(url, params={"per_page": self._page_size, "page": page})
            for event in resp.json():
                if event.get("event") == name:
                    logger.debug("event_found", event_name=name, number=number)
                    return event
            if not _parse_link(resp.headers.get("link", ""), "next"):
                return None
            page += 1

    # -----------------------------------------------------------------------
    # RemoteRepository
    # -----------------------------------------------------------------------

    def future_tag(self, name: str) -> Tag:
        return Tag(
            name=name,
            time=datetime.now(UTC),
            web_url=f"{self.WEB_URL}/{self.owner}/{self.repo}/tree/{name}",
        )

    def compare_url(self, base: str, head: str) -> str:
        return f"{self.WEB_URL}/{self.owner}/{self.repo}/compare/{base}...{head}"

    async def check_permissions(self) -> None:
        """Ensure the token can read the repository.

        Classic tokens report their scopes in the X-OAuth-Scopes header and
        must include "repo". Tokens that report no scopes (fine-grained or
        app tokens, or no token for a public repository) are accepted if the
        repository itself is readable.
        """
        try:
            resp = await self._client.get(self._repo_path)
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"GitHub API request to {self._repo_path} failed: {exc}") from exc

        if resp.status_code in (401, 403, 404):
            raise PermissionDeniedError(
                f"cannot access GitHub repository {self.owner}/{self.repo} "
                f"(HTTP {resp.status_code}): {_error_message(resp)}"
            )
        if resp.is_error:
            raise RemoteFetchError(
                f"GitHub API returned {resp.status_code} for {self._repo_path}: "
                f"{_error_message(resp)}"
            )

        header = resp.headers.get("x-oauth-scopes")
        if header is not None:
            scopes = {s.strip() for s in header.split(",") if s.strip()}
            if REQUIRED_SCOPE not in scopes:
                raise PermissionDeniedError(
                    f"GitHub access token is missing the required scope: {REQUIRED_SCOPE}"
                )

        logger.debug("permissions_verified", scope=REQUIRED_SCOPE)

    async def fetch_first_commit(self) -> Commit:
        logger.debug("fetching_first_commit")
        url = f"{self._repo_path}/commits"

        page = await self._get_page(url, 1, self._page_size)
        if page.last_page > 1:
            page = await self._get_page(url, page.last_page, self._page_size)
        if not page.items:
            raise RemoteFetchError(f"GitHub repository {self.owner}/{self.repo} has no commits")

        records = [_to_commit_record(item) for item in page.items]
        for record in records:
            self._commits.save(record.hash, record)

        first = records[-1].to_commit()
        logger.debug("first_commit_fetched", commit=first.hash)
        return first

    async def fetch_branch(self, name: str) -> Branch:
        resp = await self._get(f"{self._repo_path}/branches/{name}")
        data = resp.json()

        record = _to_commit_record(data["commit"])
        self._commits.save(record.hash, record)

        logger.debug("branch_fetched", branch=data["name"], head=record.hash)
        return Branch(name=data["name"], head_commit=record.to_commit())

    async def fetch_default_branch(self) -> Branch:
        resp = await self._get(self._repo_path)
        return await self.fetch_branch(resp.json()["default_branch"])

    async def fetch_tags(self) -> list[Tag]:
        logger.debug("fetching_tags")
        url = f"{self._repo_path}/tags"

        async def fetch_page(page: int, page_size: int) -> Page[dict]:
            return await self._get_page(url, page, page_size)

        tag_store = await fetch_all_pages(
            fetch_page, key=lambda t: t["name"], fan_out=self._fan_out,
            page_size=self._page_size, name="tags",
        )
        raw_tags = tag_store.values()

        logger.debug("fetching_tag_commits", count=len(raw_tags))
        records = await self._fan_out.run(
            self._resolver.get_commit(t["commit"]["sha"]) for t in raw_tags
        )

        tags = [
            Tag(
                name=t["name"],
                time=record.time,
                commit=record.to_commit(),
                web_url=f"{self.WEB_URL}/{self.owner}/{self.repo}/tree/{t['name']}",
            )
            for t, record in zip(raw_tags, records)
        ]
        logger.debug("tags_fetched", count=len(tags))
        return tags

    async def fetch_issues_and_merges(
        self, since: datetime | None
    ) -> tuple[list[Issue], list[Merge]]:
        if since is None:
            logger.info("fetching_issues", since="beginning")
        else:
            logger.info("fetching_issues", since=since.isoformat())

        # Closed issues and pull requests
        url = f"{self._repo_path}/issues"
        params: dict[str, Any] = {"state": "closed"}
        if since is not None:
            params["since"] = since.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

        async def fetch_page(page: int, page_size: int) -> Page[dict]:
            return await self._get_page(url, page, page_size, params)

        issue_store = await fetch_all_pages(
            fetch_page, key=lambda i: i["number"], fan_out=self._fan_out,
            page_size=self._page_size, name="issues",
        )
        logger.debug("issues_fetched", count=len(issue_store))

        # Closing/merging events and landing commits
        event_store: FetchCache[int, dict] = FetchCache()

        async def resolve_event(item: dict) -> None:
            number = item["number"]
            if "pull_request" not in item:
                event = await self._find_event(number, "closed")
                if event is not None:
                    event_store.save(number, event)
                return

            event = await self._find_event(number, "merged")
            # A pull request closed without merging has no merged event
            if event is not None and event.get("commit_id"):
                await self._resolver.get_commit(event["commit_id"])
                event_store.save(number, event)

        await self._fan_out.run(resolve_event(item) for item in issue_store.values())

        # Authors, closers and mergers
        usernames: set[str] = set()
        for item in issue_store.values():
            event, found = event_store.load(item["number"])
            if not found and "pull_request" in item:
                continue
            usernames.add(_login(item.get("user")))
            usernames.add(_login((event or {}).get("actor")))
        usernames.discard("")

        await self._fan_out.run(self._get_user(u) for u in sorted(usernames))

        issues, merges = self._join_issues_and_merges(issue_store, event_store)
        logger.info("issues_and_merges_fetched", issues=len(issues), merges=len(merges))
        return issues, merges

    async def fetch_parent_commits(self, commit_hash: str) -> list[Commit]:
        logger.debug("fetching_parent_commits", commit=commit_hash)
        return await self._resolver.ancestors(commit_hash)

    # -----------------------------------------------------------------------
    # Joining
    # -----------------------------------------------------------------------

    def _user(self, raw: dict | None) -> User:
        login = _login(raw)
        if not login:
            return User()
        user, found = self._users.load(login)
        return user if found else User(username=login)

    def _join_issues_and_merges(
        self,
        issue_store: FetchCache[int, dict],
        event_store: FetchCache[int, dict],
    ) -> tuple[list[Issue], list[Merge]]:
        issues: list[Issue] = []
        merges: list[Merge] = []

        for item in issue_store.values():
            event, found = event_store.load(item["number"])
            if not found:
                if "pull_request" in item:
                    continue
                # Issue events can be missing for old or transferred issues
                event = {}

            labels = frozenset(label["name"] for label in item.get("labels") or [])
            milestone = (item.get("milestone") or {}).get("title") or ""
            author = self._user(item.get("user"))
            actor = self._user(event.get("actor"))

            if "pull_request" not in item:
                closed_at = item.get("closed_at") or event.get("created_at")
                if not closed_at:
                    continue
                issues.append(
                    Issue(
                        number=item["number"],
                        title=item["title"],
                        labels=labels,
                        milestone=milestone,
                        time=_parse_time(closed_at),
                        author=author,
                        web_url=item.get("html_url", ""),
                        closer=actor,
                    )
                )
                continue

            record, _ = self._commits.load(event["commit_id"])
            merges.append(
                Merge(
                    number=item["number"],
                    title=item["title"],
                    labels=labels,
                    milestone=milestone,
                    # The committer time of the merge commit is when it landed
                    time=record.time,
                    author=author,
                    web_url=item.get("html_url", ""),
                    merger=actor,
                    landing_commit=record.to_commit(),
                )
            )

        return sort_changes(issues), sort_changes(merges)


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _login(raw: dict | None) -> str:
    return (raw or {}).get("login") or ""


def _to_user(data: dict) -> User:
    return User(
        name=data.get("name") or "",
        email=data.get("email") or "",
        username=data["login"],
        web_url=data.get("html_url") or "",
    )


def _to_commit_record(data: dict) -> CommitRecord:
    return CommitRecord(
        hash=data["sha"],
        time=_parse_time(data["commit"]["committer"]["date"]),
        parents=tuple(p["sha"] for p in data.get("parents") or []),
    )


def _parse_link(link_header: str, rel: str) -> str | None:
    """Extract the URL with the given rel from a GitHub Link header."""
    if not link_header:
        return None
    for part in link_header.split(","):
        if f'rel="{rel}"' in part:
            return part.split(";")[0].strip().strip("<>")
    return None


def _parse_page_number(url: str | None) -> int | None:
    if not url:
        return None
    page = httpx.URL(url).params.get("page")
    return int(page) if page and page.isdigit() else None


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:300]
    if isinstance(body, dict):
        return str(body.get("message") or body)
    return str(body)[:300]
