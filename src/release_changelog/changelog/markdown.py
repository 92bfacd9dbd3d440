"""Markdown changelog file.

Layout of a generated file:

    # Changelog

    **DO NOT MODIFY THIS FILE!**
    *This changelog is automatically generated by release-changelog*


    ## [v0.2.0](https://github.com/octocat/Hello-World/tree/v0.2.0) (2020-11-02)

    https://example.com/releases/v0.2.0

    [Compare Changes](https://github.com/octocat/Hello-World/compare/v0.1.0...v0.2.0)

    **Fixed Bugs:**

      - Fixed a bug [#1001](https://github.com/octocat/Hello-World/issues/1001) ([octocat](https://github.com/octocat))

New release sections are inserted above the first existing one. Everything
else in the file is left as it is.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from release_changelog.logging_config import get_logger
from release_changelog.schemas import Changelog, Issue, Merge, Release, User

logger = get_logger(__name__)

DEFAULT_TITLE = "Changelog"

HEADER = (
    "# {title}\n"
    "\n"
    "**DO NOT MODIFY THIS FILE!**\n"
    "*This changelog is automatically generated by release-changelog*\n"
    "\n"
    "\n"
)

TITLE_RE = re.compile(r"^# (.+)$", re.MULTILINE)
RELEASE_RE = re.compile(
    r"^## \[(?P<tag>[^\]]+)\]\((?P<url>[^)]*)\) \((?P<date>\d{4}-\d{2}-\d{2})\)[ \t]*$",
    re.MULTILINE,
)


class MarkdownProcessor:
    """Changelog processor for Markdown files.

    Usage:
        processor = MarkdownProcessor("CHANGELOG.md", base_file="HISTORY.md")
        changelog = processor.parse()
        ...
        content = processor.render(changelog)
    """

    def __init__(self, changelog_file: str | Path, base_file: str | Path | None = None) -> None:
        """Initialize the processor.

        Args:
            changelog_file: Path of the changelog to read and write
            base_file: Optional file appended below the generated releases
                       when the changelog file is created
        """
        self.changelog_file = Path(changelog_file)
        self.base_file = Path(base_file) if base_file else None
        self._content = ""
        self._created = False

    def parse(self) -> Changelog:
        if not self.changelog_file.exists():
            logger.info("changelog_not_found", file=str(self.changelog_file))
            self._content = HEADER.format(title=DEFAULT_TITLE)
            self._created = True
            return Changelog(title=DEFAULT_TITLE)

        self._content = self.changelog_file.read_text()
        self._created = False

        title_match = TITLE_RE.search(self._content)
        existing = [
            Release(
                tag_name=m.group("tag"),
                tag_url=m.group("url"),
                tag_time=datetime.strptime(m.group("date"), "%Y-%m-%d").replace(tzinfo=UTC),
            )
            for m in RELEASE_RE.finditer(self._content)
        ]

        logger.info("changelog_parsed", file=str(self.changelog_file), releases=len(existing))
        return Changelog(
            title=title_match.group(1).strip() if title_match else DEFAULT_TITLE,
            existing=existing,
        )

    def render(self, changelog: Changelog) -> str:
        if not self._content:
            self.parse()

        sections = "".join(render_release(r) for r in changelog.new)

        match = RELEASE_RE.search(self._content)
        if match:
            content = self._content[: match.start()] + sections + self._content[match.start() :]
        else:
            content = self._content + sections

        if self._created and self.base_file is not None:
            content += self.base_file.read_text()

        self.changelog_file.write_text(content)
        self._content = content
        self._created = False

        logger.info("changelog_written", file=str(self.changelog_file), releases=len(changelog.new))
        return content


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def render_release(release: Release) -> str:
    date = ""
    if release.tag_time:
        tag_time = release.tag_time
        # Headings are read back as UTC midnight
        if tag_time.tzinfo is not None:
            tag_time = tag_time.astimezone(UTC)
        date = tag_time.strftime("%Y-%m-%d")
    lines = [f"## [{release.tag_name}]({release.tag_url}) ({date})", ""]

    if release.release_url:
        lines += [release.release_url, ""]
    if release.compare_url:
        lines += [f"[Compare Changes]({release.compare_url})", ""]

    for issue_group in release.issue_groups:
        lines += [f"**{issue_group.title}:**", ""]
        lines += [_render_issue(i) for i in issue_group.issues]
        lines.append("")

    for merge_group in release.merge_groups:
        lines += [f"**{merge_group.title}:**", ""]
        lines += [_render_merge(m) for m in merge_group.merges]
        lines.append("")

    return "\n".join(lines) + "\n\n"


def _render_issue(issue: Issue) -> str:
    return _render_item(issue.title, issue.number, issue.web_url, [issue.author, issue.closer])


def _render_merge(merge: Merge) -> str:
    return _render_item(merge.title, merge.number, merge.web_url, [merge.author, merge.merger])


def _render_item(title: str, number: int, url: str, users: Iterable[User]) -> str:
    links = _user_links(users)
    line = f"  - {title} [#{number}]({url})"
    return f"{line} ({links})" if links else line


def _user_links(users: Iterable[User]) -> str:
    seen: dict[str, str] = {}
    for user in users:
        if user.username and user.username not in seen:
            seen[user.username] = f"[{user.username}]({user.web_url})"
    return ", ".join(seen.values())
