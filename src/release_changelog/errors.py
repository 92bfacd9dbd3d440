"""Error types raised while generating a changelog.

Every error here is terminal for the current run: nothing is retried and no
partial changelog is produced. The CLI reports the error and exits non-zero.

Expected "not part of any release yet" situations (an issue closed after the
last tag, a merge whose commit is not on any tag) are not errors; those
items are simply left out.
"""

from __future__ import annotations

from collections.abc import Sequence


class ChangelogError(Exception):
    """Base class for all changelog generation errors."""


class UnknownTagError(ChangelogError):
    """A requested from/to tag name is not among the candidate tags.

    Attributes:
        option: Which option named the tag (e.g., "from-tag")
        name: The requested tag name
        choices: Tag names that would have been accepted
    """

    def __init__(self, option: str, name: str, choices: Sequence[str]) -> None:
        self.option = option
        self.name = name
        self.choices = list(choices)
        super().__init__(
            f"{option} {name!r} not found; {option} can be one of {self.choices}"
        )


class FutureTagCollisionError(ChangelogError):
    """The requested future tag already exists on the remote."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"future tag cannot be same as an existing tag: {name}")


class RemoteFetchError(ChangelogError):
    """A remote call failed. The transport/API error is the ``__cause__``."""


class PermissionDeniedError(ChangelogError):
    """The access token lacks a scope required to read the repository."""


class ConfigError(ChangelogError, ValueError):
    """Invalid configuration (YAML, schema, regex or repository remote)."""
