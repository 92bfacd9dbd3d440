"""Concurrent fan-out and paginated fetching for remote providers.

Remote collections (tags, issues, commits) are paged. The first page is
fetched on its own to learn how many pages exist; every remaining page is
then fetched concurrently, one task per page.

Failure semantics:
- An error on the first page aborts before any concurrent fetch starts.
- The first error raised by any task of a fan-out group cancels all of its
  in-flight siblings and is the only error reported. Later errors and
  results already produced by siblings are discarded; there is no partial
  result and no retry.

Usage:
    fan_out = FanOut(limit=10)
    tags = await fetch_all_pages(fetch_tags_page, key=lambda t: t["name"],
                                 fan_out=fan_out)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from release_changelog.logging_config import get_logger
from release_changelog.remote.cache import FetchCache

logger = get_logger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class FanOut:
    """Task group with a shared cancellation signal and first-error-wins.

    Attributes:
        limit: Maximum number of tasks allowed to run their remote call at
               the same time (None = unbounded)
    """

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit

    async def run(self, aws: Iterable[Awaitable[T]]) -> list[T]:
        """Run all awaitables concurrently and return their results in order.

        Raises:
            The first exception raised by any of the awaitables. Every other
            task still running at that point is cancelled and awaited.
        """
        aws = list(aws)
        semaphore = asyncio.Semaphore(self.limit) if self.limit else None

        async def guarded(aw: Awaitable[T]) -> T:
            if semaphore is None:
                return await aw
            async with semaphore:
                return await aw

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(guarded(aw)) for aw in aws]
        except BaseExceptionGroup as eg:
            raise eg.exceptions[0] from None
        finally:
            # Tasks cancelled before they started never awaited their coroutine
            for aw in aws:
                if asyncio.iscoroutine(aw):
                    aw.close()

        return [task.result() for task in tasks]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass
class Page(Generic[T]):
    """One page of a remote listing.

    Attributes:
        items: Entries on this page
        last_page: Number of the last page of the listing (1 if single-page)
    """

    items: list[T] = field(default_factory=list)
    last_page: int = 1


PageFetcher = Callable[[int, int], Awaitable[Page[T]]]


async def fetch_all_pages(
    fetch_page: PageFetcher[T],
    key: Callable[[T], K],
    fan_out: FanOut,
    page_size: int = 100,
    name: str = "items",
) -> FetchCache[K, T]:
    """Fetch every page of a listing and merge the entries by identity.

    Args:
        fetch_page: Coroutine function taking (page number, page size)
        key: Identity of an entry (e.g., tag name, issue number); entries
             seen on more than one page overwrite each other harmlessly
        fan_out: Task group used for pages 2..last
        page_size: Entries requested per page
        name: What is being fetched, for logging

    Returns:
        A cache of all entries keyed by identity. Its order carries no
        meaning; callers re-sort when order matters.

    Raises:
        Whatever ``fetch_page`` raises, per the module failure semantics.
    """
    store: FetchCache[K, T] = FetchCache()

    def save_page(page: Page[T]) -> None:
        for item in page.items:
            store.save(key(item), item)

    first = await fetch_page(1, page_size)
    logger.debug("page_fetched", listing=name, page=1, last_page=first.last_page)
    save_page(first)

    async def fetch_and_save(page_number: int) -> None:
        page = await fetch_page(page_number, page_size)
        logger.debug("page_fetched", listing=name, page=page_number)
        save_page(page)

    await fan_out.run(fetch_and_save(p) for p in range(2, first.last_page + 1))
    return store
