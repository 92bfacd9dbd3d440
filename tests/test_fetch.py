"""Tests for the concurrent fan-out and paginated fetching.

Run with: pytest tests/test_fetch.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from release_changelog.errors import RemoteFetchError
from release_changelog.remote.fetch import FanOut, Page, fetch_all_pages

# ---------------------------------------------------------------------------
# FanOut
# ---------------------------------------------------------------------------


class TestFanOut:
    @pytest.mark.asyncio
    async def test_results_in_submission_order(self) -> None:
        async def value(i: int) -> int:
            await asyncio.sleep(0.001 * (5 - i))
            return i

        assert await FanOut().run(value(i) for i in range(5)) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        assert await FanOut(limit=3).run([]) == []

    @pytest.mark.asyncio
    async def test_limit_bounds_in_flight_tasks(self) -> None:
        running = 0
        peak = 0

        async def work() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.005)
            running -= 1

        await FanOut(limit=3).run(work() for _ in range(10))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_first_error_cancels_siblings(self) -> None:
        cancelled = asyncio.Event()
        never = asyncio.Event()

        async def fail() -> None:
            await asyncio.sleep(0)
            raise RemoteFetchError("first")

        async def hang() -> None:
            try:
                await never.wait()
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(RemoteFetchError, match="first"):
            await FanOut().run([hang(), fail(), hang()])
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_only_first_error_is_reported(self) -> None:
        async def fail(message: str, delay: float) -> None:
            await asyncio.sleep(delay)
            raise RemoteFetchError(message)

        with pytest.raises(RemoteFetchError, match="early"):
            await FanOut().run([fail("late", 0.02), fail("early", 0.001)])

    @pytest.mark.asyncio
    async def test_error_is_raised_unwrapped(self) -> None:
        async def fail() -> None:
            raise RemoteFetchError("plain")

        with pytest.raises(RemoteFetchError) as exc_info:
            await FanOut(limit=2).run([fail(), asyncio.sleep(0.01)])
        assert not isinstance(exc_info.value, BaseExceptionGroup)

    @pytest.mark.asyncio
    async def test_queued_tasks_are_cancelled_after_error(self) -> None:
        started: list[int] = []

        async def work(i: int) -> None:
            started.append(i)
            if i == 0:
                raise RemoteFetchError("boom")
            await asyncio.sleep(0.01)

        with pytest.raises(RemoteFetchError):
            await FanOut(limit=1).run(work(i) for i in range(5))
        # At most the task already handed the semaphore gets to start
        assert started[0] == 0
        assert len(started) <= 2


# ---------------------------------------------------------------------------
# fetch_all_pages
# ---------------------------------------------------------------------------


def paged_listing(pages: dict[int, list[dict]], fail_on: int | None = None):
    """Build a page fetcher over fixed pages, recording requested pages."""
    requested: list[int] = []

    async def fetch_page(page: int, page_size: int) -> Page[dict]:
        requested.append(page)
        await asyncio.sleep(0.001 * page)
        if page == fail_on:
            raise RemoteFetchError(f"page {page} failed")
        return Page(items=pages[page], last_page=len(pages))

    return fetch_page, requested


THREE_PAGES = {
    1: [{"name": "v3"}, {"name": "v2"}],
    2: [{"name": "v1"}, {"name": "v0"}],
    3: [{"name": "v0"}, {"name": "v-1"}],
}


class TestFetchAllPages:
    @pytest.mark.asyncio
    async def test_merges_all_pages_by_key(self) -> None:
        fetch_page, requested = paged_listing(THREE_PAGES)

        store = await fetch_all_pages(fetch_page, key=lambda t: t["name"], fan_out=FanOut())

        assert sorted(requested) == [1, 2, 3]
        assert requested[0] == 1
        assert sorted(t["name"] for t in store.values()) == ["v-1", "v0", "v1", "v2", "v3"]

    @pytest.mark.asyncio
    async def test_single_page(self) -> None:
        fetch_page, requested = paged_listing({1: [{"name": "v1"}]})

        store = await fetch_all_pages(fetch_page, key=lambda t: t["name"], fan_out=FanOut())

        assert requested == [1]
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_page_two_failure_returns_only_that_error(self) -> None:
        fetch_page, _ = paged_listing(THREE_PAGES, fail_on=2)

        with pytest.raises(RemoteFetchError, match="page 2 failed"):
            await fetch_all_pages(fetch_page, key=lambda t: t["name"], fan_out=FanOut())

    @pytest.mark.asyncio
    async def test_first_page_failure_starts_nothing_else(self) -> None:
        fetch_page, requested = paged_listing(THREE_PAGES, fail_on=1)

        with pytest.raises(RemoteFetchError, match="page 1 failed"):
            await fetch_all_pages(fetch_page, key=lambda t: t["name"], fan_out=FanOut())
        assert requested == [1]

    @pytest.mark.asyncio
    async def test_page_size_is_passed_through(self) -> None:
        sizes: list[int] = []

        async def fetch_page(page: int, page_size: int) -> Page[int]:
            sizes.append(page_size)
            return Page(items=[page], last_page=2)

        await fetch_all_pages(fetch_page, key=lambda i: i, fan_out=FanOut(), page_size=25)
        assert sizes == [25, 25]
