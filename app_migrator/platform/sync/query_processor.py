"""Bounded query processor: fan listing results out to workers and back in.

A caller supplies a query function that fills a ``QueryResultsCollector`` and a
per-item process function. Workers drain the collector, call the process
function, and push each ``ProcessOutcome`` onto one ``OutcomeStream`` the caller
iterates while work is still in flight.

Guarantees:
- Every item that entered the collector yields exactly one outcome.
- Outcomes arrive in completion order, not submission order.
- A failing item is reported as an outcome; the pool keeps going.
- A failing listing call is fatal: no further pages are requested.

There is no cancellation token: a caller that must stop early calls
``OutcomeStream.aclose()``, which cancels the producer and every worker.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Set

from app_migrator.core.config.settings import DEFAULT_CONCURRENCY_LIMIT
from app_migrator.core.exceptions import (
    EmptyWorkSetError,
    ItemProcessingError,
    QueryFailureError,
    RetryTimeoutError,
)
from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.platform.sync.collector import QueryResultsCollector
from app_migrator.platform.sync.summary import Summary
from app_migrator.schemas import ProcessOutcome, QueryResult

ProcessFunc = Callable[[QueryResult], Awaitable[ProcessOutcome]]
QueryFunc = Callable[[QueryResultsCollector], Awaitable[int]]
PageQueryFunc = Callable[[int, QueryResultsCollector], Callable[[], Awaitable[int]]]

_END_OF_STREAM = object()


class OutcomeStream:
    """Async iterator over ProcessOutcome values, in completion order.

    Iteration ends once every worker has finished. If the listing call failed,
    the outcomes already produced are yielded first and the fatal error is
    raised in place of ``StopAsyncIteration``.
    """

    def __init__(self, on_finish: Optional[Callable[["OutcomeStream"], None]] = None):
        """Create an open stream."""
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()
        self._on_finish = on_finish
        self._started_at = time.monotonic()
        self._finished = False
        self._exhausted = False
        self.error: Optional[BaseException] = None
        self.duration: Optional[float] = None
        self.produced = 0

    @property
    def finished(self) -> bool:
        """Whether all workers are done (outcomes may still be unread)."""
        return self._finished

    def __aiter__(self) -> "OutcomeStream":
        """Return the stream itself."""
        return self

    async def __anext__(self) -> ProcessOutcome:
        """Return the next outcome as soon as any worker completes one."""
        if self._exhausted:
            raise StopAsyncIteration
        outcome = await self._queue.get()
        if outcome is _END_OF_STREAM:
            self._exhausted = True
            if self.error is not None:
                raise self.error
            raise StopAsyncIteration
        return outcome

    async def collect(self) -> List[ProcessOutcome]:
        """Drain the stream into a list."""
        return [outcome async for outcome in self]

    async def aclose(self) -> None:
        """Cancel the producer and every worker, then end the stream."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._finish()

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _emit(self, outcome: ProcessOutcome) -> None:
        self.produced += 1
        self._queue.put_nowait(outcome)

    def _finish(self, error: Optional[BaseException] = None) -> None:
        if self._finished:
            return
        self._finished = True
        self.error = error
        self.duration = time.monotonic() - self._started_at
        if self._on_finish is not None:
            self._on_finish(self)
        self._queue.put_nowait(_END_OF_STREAM)


class _WorkerPool:
    """Workers sharing one collector; the number alive never exceeds the ceiling."""

    def __init__(
        self,
        ceiling: int,
        collector: QueryResultsCollector,
        process_fn: ProcessFunc,
        stream: OutcomeStream,
        logger: ContextualLogger,
    ):
        self.ceiling = ceiling
        self.collector = collector
        self.process_fn = process_fn
        self.stream = stream
        self.logger = logger
        self._workers: Set[asyncio.Task] = set()
        self.started = 0

    @property
    def alive(self) -> int:
        return len(self._workers)

    def grow_to(self, size: int) -> int:
        """Start workers until ``min(size, ceiling)`` are alive; return how many started."""
        target = min(size, self.ceiling)
        started = 0
        while len(self._workers) < target:
            self.started += 1
            task = asyncio.create_task(self._run(), name=f"query-worker-{self.started}")
            self._workers.add(task)
            task.add_done_callback(self._workers.discard)
            self.stream._track(task)
            started += 1
        return started

    async def join(self) -> None:
        """Wait for every worker, including any started while waiting."""
        while self._workers:
            await asyncio.gather(*list(self._workers), return_exceptions=True)

    async def _run(self) -> None:
        while True:
            item = await self.collector.get()
            if item is None:
                return
            self.stream._emit(await self._process(item))

    async def _process(self, item: QueryResult) -> ProcessOutcome:
        try:
            outcome = await self.process_fn(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(
                f"Processing failed for {item.value!r}: {e}",
                extra={"error_type": type(e).__name__},
            )
            return ProcessOutcome(item=item, error=ItemProcessingError(item.value, e))

        if not isinstance(outcome, ProcessOutcome):
            return ProcessOutcome(item=item, value=outcome)
        return outcome


class BoundedQueryProcessor:
    """Runs listing queries and processes their items on a bounded worker pool."""

    def __init__(
        self,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        logger: Optional[ContextualLogger] = None,
        summary: Optional[Summary] = None,
    ):
        """Initialize the processor.

        Args:
            concurrency_limit: Ceiling on workers alive at once
            logger: Contextual logger
            summary: Receives the wall-clock duration of paginated runs
        """
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self.concurrency_limit = concurrency_limit
        self.logger = logger or default_logger.with_context(component="query_processor")
        self.summary = summary

    async def execute_query(
        self,
        collector: QueryResultsCollector,
        query_fn: QueryFunc,
        process_fn: ProcessFunc,
    ) -> OutcomeStream:
        """Run a single listing query and process every item it reports.

        The query must fit its items in the collector (size the collector to the
        item count), since workers only start once the query returns.

        Args:
            collector: Buffer the query fills
            query_fn: Fills the collector and returns the number of items added
            process_fn: Called once per item

        Returns:
            A stream that ends once every item has an outcome.

        Raises:
            EmptyWorkSetError: The query reported zero items.
            RetryTimeoutError: The query's retry budget ran out.
            QueryFailureError: The query failed for any other reason.
        """
        try:
            count = await query_fn(collector)
        except (RetryTimeoutError, QueryFailureError):
            raise
        except Exception as e:
            raise QueryFailureError(e) from e

        if count == 0:
            await collector.close()
            raise EmptyWorkSetError()

        stream = OutcomeStream()
        pool = _WorkerPool(self.concurrency_limit, collector, process_fn, stream, self.logger)
        started = pool.grow_to(count)
        self.logger.debug(f"Processing {count} items with {started} workers")

        stream._track(asyncio.create_task(self._close_when_filled(collector, count)))
        stream._track(asyncio.create_task(self._finish_when_done(pool, stream)))
        return stream

    async def execute_page_query(
        self,
        collector: QueryResultsCollector,
        page_query_fn: PageQueryFunc,
        process_fn: ProcessFunc,
    ) -> OutcomeStream:
        """Page through a listing query, processing each page as it arrives.

        Pages 1, 2, 3... are requested until one reports zero items. Items from
        page N may still be processing while page N+1 is fetched; all outcomes
        go to one stream the caller can consume straight away.

        Workers are not restarted per page. The pool is topped up to
        ``min(concurrency_limit, items on this page)`` live workers, so a later
        page may start fewer workers than it has items, or none at all, while
        the workers from earlier pages drain the shared collector. The number
        of live workers never exceeds ``concurrency_limit``.

        Args:
            collector: Buffer shared by every page; its capacity is the page size
            page_query_fn: ``(page, collector)`` -> zero-argument coroutine factory
                returning the number of items the page added
            process_fn: Called once per item

        Returns:
            A stream that ends after the last page's items are processed. If a
            page call fails, the stream raises QueryFailureError (or
            RetryTimeoutError) after yielding the outcomes already produced.
        """
        stream = OutcomeStream(on_finish=self._record_duration)
        pool = _WorkerPool(self.concurrency_limit, collector, process_fn, stream, self.logger)
        stream._track(
            asyncio.create_task(self._paginate(collector, page_query_fn, pool, stream))
        )
        return stream

    async def _paginate(
        self,
        collector: QueryResultsCollector,
        page_query_fn: PageQueryFunc,
        pool: _WorkerPool,
        stream: OutcomeStream,
    ) -> None:
        page = 1
        error: Optional[BaseException] = None
        try:
            while True:
                try:
                    count = await page_query_fn(page, collector)()
                except asyncio.CancelledError:
                    raise
                except (RetryTimeoutError, QueryFailureError) as e:
                    self.logger.error(f"Listing page {page} failed: {e}")
                    error = e
                    break
                except Exception as e:
                    self.logger.error(f"Listing page {page} failed: {e}")
                    error = QueryFailureError(e, page=page)
                    error.__cause__ = e
                    break

                if count == 0:
                    self.logger.debug(f"Page {page} is empty, pagination complete")
                    break

                started = pool.grow_to(count)
                self.logger.debug(
                    f"📄 Page {page}: {count} items, {started} new workers "
                    f"({pool.alive} alive)"
                )
                page += 1
        finally:
            await collector.close()

        await pool.join()
        stream._finish(error)

    async def _close_when_filled(self, collector: QueryResultsCollector, count: int) -> None:
        await collector.wait_for_count(count)
        await collector.close()

    async def _finish_when_done(self, pool: _WorkerPool, stream: OutcomeStream) -> None:
        await pool.join()
        stream._finish()

    def _record_duration(self, stream: OutcomeStream) -> None:
        if self.summary is not None and stream.duration is not None:
            self.summary.set_duration(stream.duration)

