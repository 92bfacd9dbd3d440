"""Remote repository providers.

These modules fetch tags, commits, branches, issues and merged changes
from a hosting platform and hand them to the generator as plain models.
Everything provider-specific stays behind the RemoteRepository protocol.
"""

from __future__ import annotations

from release_changelog.config import ChangelogConfig, Platform
from release_changelog.errors import ConfigError
from release_changelog.remote.base import RemoteRepository
from release_changelog.remote.github import GitHubRepository


def new_remote_repository(config: ChangelogConfig) -> RemoteRepository:
    """Create the remote repository client for the configured platform.

    Raises:
        ConfigError: If the platform is unsupported or the path is not
                     of the form "owner/name".
    """
    platform = config.repo.platform
    path = config.repo.path.strip("/")

    if platform == Platform.GITHUB:
        owner, _, name = path.partition("/")
        if not owner or not name or "/" in name:
            raise ConfigError(f"Invalid GitHub repository path: {config.repo.path!r}")
        return GitHubRepository(
            owner,
            name,
            token=config.repo.access_token or None,
            concurrency=config.remote.concurrency,
            page_size=config.remote.page_size,
            timeout=config.remote.timeout,
        )

    if platform == Platform.GITLAB:
        raise ConfigError("GitLab repositories are not supported yet")

    raise ConfigError(f"Unknown remote platform: {platform}")
