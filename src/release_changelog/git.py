"""Discover the remote repository from the working copy.

Reads the URL of the ``origin`` remote with ``git config`` and splits it
into a platform domain and a repository path. Both HTTPS and SSH remotes
are understood:

    https://github.com/octocat/Hello-World.git -> ("github.com", "octocat/Hello-World")
    git@github.com:octocat/Hello-World.git     -> ("github.com", "octocat/Hello-World")
"""

from __future__ import annotations

import re
import subprocess

from release_changelog.errors import ConfigError
from release_changelog.logging_config import get_logger

logger = get_logger(__name__)

_ID = r"[A-Za-z][0-9A-Za-z-]+[0-9A-Za-z]"
_DOMAIN = rf"{_ID}\.[A-Za-z]{{2,63}}"
_REPO_PATH = rf"(?:{_ID}/){{1,20}}{_ID}"

HTTPS_RE = re.compile(rf"^https://(?P<domain>{_DOMAIN})/(?P<path>{_REPO_PATH})(?:\.git)?$")
SSH_RE = re.compile(rf"^git@(?P<domain>{_DOMAIN}):(?P<path>{_REPO_PATH})(?:\.git)?$")


def parse_remote_url(url: str) -> tuple[str, str]:
    """Split a git remote URL into ``(domain, path)``.

    Raises:
        ConfigError: If the URL is neither an HTTPS nor an SSH remote
    """
    url = url.strip()
    for regex in (HTTPS_RE, SSH_RE):
        match = regex.match(url)
        if match:
            return match.group("domain"), match.group("path")
    raise ConfigError(f"invalid git remote url: {url}")


def get_remote(remote_name: str = "origin", cwd: str | None = None) -> tuple[str, str]:
    """Return ``(domain, path)`` of a remote of the git repository at ``cwd``.

    Raises:
        ConfigError: If git is unavailable, the directory is not a git
                     repository, the remote is missing or its URL is invalid
    """
    try:
        result = subprocess.run(
            ["git", "config", "--get", f"remote.{remote_name}.url"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise ConfigError("git executable not found") from exc
    except subprocess.CalledProcessError as exc:
        raise ConfigError(
            f"cannot read git remote {remote_name!r}: {exc.stderr.strip() or 'not found'}"
        ) from exc

    url = result.stdout.strip()
    logger.info("git_remote_found", remote=remote_name, url=url)
    return parse_remote_url(url)
