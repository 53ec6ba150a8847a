"""Lazy paged results for collection retrieval."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Generic, TypeVar

import structlog

from batch_mcp_server.models import ListPoolsResponse

log = structlog.get_logger()

T = TypeVar("T")

PageFetcher = Callable[[str | None], Awaitable[ListPoolsResponse]]


class PagedResult(Generic[T]):
    """Async iterable over a paged collection, fetching pages on demand.

    Nothing is fetched when the result is constructed. The first page is
    requested when iteration starts and each later page only once the items of
    the previous one have been consumed. Every ``async for`` starts over from
    the first page; pages are never cached between iterations.

    Args:
        fetch_page: Coroutine function taking a continuation token (None for
            the first page) and returning one page.
        project: Converts one raw entity into the item type.
        max_count: Stop after this many items without fetching further pages.
            None means iterate until the service reports no more pages.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        project: Callable[[dict[str, Any]], T],
        max_count: int | None = None,
    ) -> None:
        self._fetch_page = fetch_page
        self._project = project
        self._max_count = max_count
        self.pages_fetched = 0

    @property
    def max_count(self) -> int | None:
        return self._max_count

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        token: str | None = None
        yielded = 0
        while True:
            page = await self._fetch_page(token)
            self.pages_fetched += 1
            for raw in page.pools:
                yield self._project(raw)
                yielded += 1
                if self._max_count is not None and yielded >= self._max_count:
                    log.debug("paged_result_limit_reached", max_count=self._max_count)
                    return
            token = page.continuation_token
            if not token:
                return

    async def to_list(self) -> list[T]:
        """Drain one full iteration into a list."""
        return [item async for item in self]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_count={self._max_count!r}, pages_fetched={self.pages_fetched})"
