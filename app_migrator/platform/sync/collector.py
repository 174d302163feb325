"""Bounded buffer between a listing query and the worker pool.

A query function deposits ``QueryResult`` items with ``add_result``; workers
take them with ``get``. The buffer holds at most ``results_per_page`` items, so
a producer outrunning the workers waits. Closing is idempotent and does not
discard buffered items: readers drain what is left, then see ``None``.
"""

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Optional

from app_migrator.core.exceptions import CollectorClosedError
from app_migrator.schemas import QueryResult


class QueryResultsCollector:
    """Bounded, closable buffer of QueryResult items with a running count."""

    def __init__(self, results_per_page: int):
        """Create an empty collector.

        Args:
            results_per_page: Buffer capacity; also the page size queries request
        """
        if results_per_page < 1:
            raise ValueError("results_per_page must be at least 1")
        self._results_per_page = results_per_page
        self._items: Deque[QueryResult] = deque()
        self._condition = asyncio.Condition()
        self._closed = False
        self._count = 0

    @property
    def results_per_page(self) -> int:
        """Buffer capacity."""
        return self._results_per_page

    @property
    def result_count(self) -> int:
        """Number of items ever added."""
        return self._count

    @property
    def closed(self) -> bool:
        """Whether ``close`` has been called."""
        return self._closed

    def pending(self) -> int:
        """Number of items buffered but not yet taken."""
        return len(self._items)

    async def add_result(self, result: QueryResult) -> None:
        """Append an item, waiting while the buffer is full.

        Raises:
            CollectorClosedError: The collector was closed before the item fit.
        """
        async with self._condition:
            await self._condition.wait_for(
                lambda: self._closed or len(self._items) < self._results_per_page
            )
            if self._closed:
                raise CollectorClosedError("cannot add results to a closed collector")
            self._items.append(result)
            self._count += 1
            self._condition.notify_all()

    async def get(self) -> Optional[QueryResult]:
        """Take the next item, or return None once closed and drained."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._closed or bool(self._items))
            if not self._items:
                return None
            item = self._items.popleft()
            self._condition.notify_all()
            return item

    async def wait_for_count(self, count: int) -> None:
        """Wait until ``count`` items have been added or the collector is closed."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._closed or self._count >= count)

    async def close(self) -> None:
        """Stop accepting items and wake every waiter."""
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    async def get_results(self) -> AsyncIterator[QueryResult]:
        """Iterate items until the collector is closed and drained."""
        while True:
            item = await self.get()
            if item is None:
                return
            yield item
