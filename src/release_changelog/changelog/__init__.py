"""Reading and writing changelog files.

A processor parses the releases a changelog file already records and
renders new releases into it.
"""

from __future__ import annotations

from typing import Protocol

from release_changelog.schemas import Changelog


class ChangelogProcessor(Protocol):
    """Protocol for changelog file formats."""

    def parse(self) -> Changelog:
        """Read the changelog file; a missing file yields an empty changelog."""
        ...

    def render(self, changelog: Changelog) -> str:
        """Write the new releases into the changelog file and return its content."""
        ...
