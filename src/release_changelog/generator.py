"""Changelog generator and command-line entry point.

The generator ties together all the components:
- Changelog file parsing and rendering (changelog/)
- Remote data fetching (remote/)
- Tag window resolution (tags.py)
- Revision index building (revisions.py)
- Issue and merge attribution (partition.py)
- Release assembly (releases.py)

The flow:
1. Parse the existing changelog
2. Check the access token and fetch the branch and tags
3. Resolve the new tags; stop if there are none
4. Index which tags reach which commits
5. Fetch closed issues and merged changes since the last recorded release
6. Attribute them to tags and group them into releases
7. Render the new releases into the changelog file
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Sequence

from release_changelog import __version__
from release_changelog.changelog import ChangelogProcessor
from release_changelog.changelog.markdown import MarkdownProcessor
from release_changelog.config import (
    ACCESS_TOKEN_ENV_VAR,
    ChangelogConfig,
    ChangesConfig,
    Grouping,
    Platform,
    Selection,
    load_config,
)
from release_changelog.errors import ChangelogError, ConfigError
from release_changelog.git import get_remote, parse_remote_url
from release_changelog.logging_config import get_logger, setup_logging
from release_changelog.partition import (
    future_tag_of,
    resolve_issue_map,
    resolve_merge_map,
    select_changes,
)
from release_changelog.releases import resolve_releases
from release_changelog.remote import new_remote_repository
from release_changelog.remote.base import RemoteRepository
from release_changelog.revisions import build_commit_index
from release_changelog.tags import prefilter_tags, resolve_tags

logger = get_logger(__name__)


class ChangelogGenerator:
    """Generates new changelog releases from remote repository data.

    Usage:
        generator = ChangelogGenerator(config, remote, MarkdownProcessor("CHANGELOG.md"))
        content = await generator.generate()
    """

    def __init__(
        self,
        config: ChangelogConfig,
        remote: RemoteRepository,
        processor: ChangelogProcessor,
    ) -> None:
        self.config = config
        self.remote = remote
        self.processor = processor

    async def generate(self) -> str:
        """Run one generation.

        Returns:
            The rendered changelog content, or "" if the changelog is
            already up to date

        Raises:
            ChangelogError: On any failure; nothing is written in that case
        """
        config = self.config
        changelog = self.processor.parse()

        await self.remote.check_permissions()

        if config.merges.branch:
            branch = await self.remote.fetch_branch(config.merges.branch)
        else:
            branch = await self.remote.fetch_default_branch()
        logger.info("branch_fetched", branch=branch.name)

        tags = await self.remote.fetch_tags()
        logger.info("tags_fetched", count=len(tags))

        sorted_tags = prefilter_tags(tags, config.tags)
        new_tags = resolve_tags(
            sorted_tags,
            changelog,
            self.remote,
            from_tag=config.tags.from_tag,
            to_tag=config.tags.to_tag,
            future_tag=config.tags.future_tag,
        )
        if not new_tags:
            logger.info("changelog_up_to_date")
            return ""

        if changelog.existing:
            base_revision = changelog.existing[0].tag_name
            since = changelog.existing[0].tag_time
        else:
            first_commit = await self.remote.fetch_first_commit()
            base_revision = first_commit.hash
            since = None

        commit_index = await build_commit_index(self.remote, branch, sorted_tags)

        issues, merges = await self.remote.fetch_issues_and_merges(since)
        issues = select_changes(issues, config.issues)
        merges = select_changes(merges, config.merges)
        logger.info("changes_selected", issues=len(issues), merges=len(merges))

        future_tag = future_tag_of(new_tags)
        issue_map = resolve_issue_map(issues, sorted_tags, future_tag)
        merge_map = resolve_merge_map(merges, commit_index, future_tag)

        releases = resolve_releases(
            new_tags,
            base_revision,
            issue_map,
            merge_map,
            self.remote,
            issues_config=config.issues,
            merges_config=config.merges,
            content_config=config.content,
        )

        content = self.processor.render(changelog.model_copy(update={"new": releases}))
        logger.info("changelog_generated", releases=len(releases))

        if config.general.print:
            sys.stdout.write(content)

        return content


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------

_LABEL_FLAGS = (
    "include-labels",
    "exclude-labels",
    "summary-labels",
    "removed-labels",
    "breaking-labels",
    "deprecated-labels",
    "feature-labels",
    "enhancement-labels",
    "bug-labels",
    "security-labels",
)


def _label_list(value: str) -> list[str]:
    return [label.strip() for label in value.split(",") if label.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="changelog",
        description="Generate a changelog from tags, closed issues and merged changes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to the YAML config (default: changelog.yml)")
    parser.add_argument(
        "--repo",
        help="Remote repository URL (default: the origin remote of the working copy)",
    )
    parser.add_argument(
        "--access-token",
        help=f"Remote access token (or set {ACCESS_TOKEN_ENV_VAR})",
    )

    general = parser.add_argument_group("general")
    general.add_argument("-f", "--file", help="Changelog file (default: CHANGELOG.md)")
    general.add_argument("-b", "--base", help="File appended when the changelog is created")
    general.add_argument("-p", "--print", action="store_true", default=None,
                         help="Print the changelog to stdout")
    general.add_argument("-v", "--verbose", action="store_true", default=None,
                         help="Show debug logs")

    tags = parser.add_argument_group("tags")
    tags.add_argument("--from-tag", help="Oldest tag to generate a release for")
    tags.add_argument("--to-tag", help="Most recent tag to generate a release for")
    tags.add_argument("--future-tag", help="Tag name for unreleased changes")
    tags.add_argument("--exclude-tags", type=_label_list, help="Comma-separated tags to skip")
    tags.add_argument("--exclude-tags-regex", help="Regular expression of tags to skip")

    for kind in ("issues", "merges"):
        group = parser.add_argument_group(kind)
        group.add_argument(f"--{kind}-selection", type=Selection, choices=list(Selection))
        group.add_argument(f"--{kind}-grouping", type=Grouping, choices=list(Grouping))
        for flag in _LABEL_FLAGS:
            group.add_argument(f"--{kind}-{flag}", type=_label_list, metavar="LABELS")
    parser.add_argument("--merges-branch", help="Branch merges land on (default: default branch)")

    parser.add_argument("--release-url", help="Release URL template with a {tag} placeholder")
    return parser


def _override_changes(section: ChangesConfig, kind: str, args: argparse.Namespace) -> None:
    for field in ("selection", "grouping", *(f.replace("-", "_") for f in _LABEL_FLAGS)):
        value = getattr(args, f"{kind}_{field}")
        if value is not None:
            setattr(section, field, value)


def resolve_repo(config: ChangelogConfig, repo_url: str | None = None) -> ChangelogConfig:
    """Set the remote platform and path from a URL or the origin remote.

    Raises:
        ConfigError: If the repository remote cannot be determined
    """
    if repo_url:
        domain, path = parse_remote_url(repo_url)
    else:
        domain, path = get_remote()
    try:
        config.repo.platform = Platform(domain)
    except ValueError as exc:
        raise ConfigError(f"Unsupported remote platform: {domain}") from exc
    config.repo.path = path
    return config


def apply_args(config: ChangelogConfig, args: argparse.Namespace) -> ChangelogConfig:
    """Override config values with the flags given on the command line."""
    if args.access_token:
        config.repo.access_token = args.access_token

    for field in ("file", "base", "print", "verbose"):
        value = getattr(args, field)
        if value is not None:
            setattr(config.general, field, value)

    tag_fields = {
        "from_tag": args.from_tag,
        "to_tag": args.to_tag,
        "future_tag": args.future_tag,
        "exclude": args.exclude_tags,
        "exclude_regex": args.exclude_tags_regex,
    }
    for field, value in tag_fields.items():
        if value is not None:
            setattr(config.tags, field, value)

    _override_changes(config.issues, "issues", args)
    _override_changes(config.merges, "merges", args)
    if args.merges_branch is not None:
        config.merges.branch = args.merges_branch

    if args.release_url is not None:
        config.content.release_url = args.release_url

    return config


async def _run(config: ChangelogConfig) -> str:
    remote = new_remote_repository(config)
    processor = MarkdownProcessor(config.general.file, config.general.base or None)
    try:
        return await ChangelogGenerator(config, remote, processor).generate()
    finally:
        await remote.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point.

    Usage:
        changelog --future-tag v0.3.0
        changelog --repo https://github.com/octocat/Hello-World.git --print
    """
    args = build_parser().parse_args(argv)

    from dotenv import load_dotenv

    load_dotenv()

    try:
        config = apply_args(load_config(args.config), args)
    except ChangelogError as exc:
        setup_logging()
        logger.error("changelog_failed", error=str(exc), error_type=type(exc).__name__)
        raise SystemExit(1) from exc

    # Keep stdout clean for the changelog when printing
    if config.general.verbose:
        setup_logging(log_level="DEBUG")
    elif config.general.print:
        setup_logging(log_level="WARNING")
    else:
        setup_logging(log_level=os.environ.get("LOG_LEVEL"))

    try:
        resolve_repo(config, args.repo)
        asyncio.run(_run(config))
    except ChangelogError as exc:
        logger.error("changelog_failed", error=str(exc), error_type=type(exc).__name__)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
