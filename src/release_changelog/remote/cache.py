"""Deduplicating fetch cache shared by concurrent remote fetches.

A cache instance lives for exactly one changelog generation run and is
handed to every fetch operation that needs it. It is the authority for
"has this commit/user already been fetched in this run": a hit never
triggers a new remote call.

Callers check-then-save without holding a lock across the remote call, so
two concurrent fetches of the same key may both save. That is harmless:
cached values are frozen models and identical for the same key.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

from release_changelog.schemas import Commit, User

K = TypeVar("K")
V = TypeVar("V")


class FetchCache(Generic[K, V]):
    """Thread-safe key/value store with no eviction.

    Every operation holds the lock for its whole duration, so ``for_each``
    sees a consistent snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._items: dict[K, V] = {}

    def save(self, key: K, value: V) -> None:
        with self._lock:
            self._items[key] = value

    def load(self, key: K) -> tuple[V | None, bool]:
        """Return ``(value, True)`` on a hit and ``(None, False)`` on a miss."""
        with self._lock:
            if key in self._items:
                return self._items[key], True
            return None, False

    def for_each(self, visit: Callable[[K, V], None]) -> None:
        """Call ``visit(key, value)`` for every entry.

        An exception raised by ``visit`` stops the iteration and propagates.
        ``visit`` may read from this cache but must not save into it.
        """
        with self._lock:
            for key, value in self._items.items():
                visit(key, value)

    def values(self) -> list[V]:
        with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class CommitRecord(Commit):
    """A cached commit together with the hashes of its parents."""

    parents: tuple[str, ...] = ()

    def to_commit(self) -> Commit:
        return Commit(hash=self.hash, time=self.time)


class CommitCache(FetchCache[str, CommitRecord]):
    """Commits keyed by hash."""


class UserCache(FetchCache[str, User]):
    """Users keyed by username."""
