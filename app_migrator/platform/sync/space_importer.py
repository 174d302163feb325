"""Import a known list of apps into a space through the query pipeline."""

from typing import Any, Optional, Sequence

from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.platform.sync.collector import QueryResultsCollector
from app_migrator.platform.sync.query_processor import (
    BoundedQueryProcessor,
    OutcomeStream,
    ProcessFunc,
)
from app_migrator.schemas import QueryResult


class SpaceImporter:
    """Feeds previously exported apps to a process function.

    The app list is already known, so a single (non-paged) query is used and
    the collector is sized to hold all of it.
    """

    def __init__(
        self,
        processor: BoundedQueryProcessor,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the importer."""
        self.processor = processor
        self.logger = logger or default_logger.with_context(component="space_importer")

    async def import_space(self, apps: Sequence[Any], process_fn: ProcessFunc) -> OutcomeStream:
        """Start importing ``apps``.

        Raises:
            EmptyWorkSetError: ``apps`` is empty.
        """
        collector = QueryResultsCollector(max(len(apps), 1))

        async def list_apps(collector: QueryResultsCollector) -> int:
            for app in apps:
                await collector.add_result(QueryResult(value=app))
            return len(apps)

        self.logger.info(f"Importing {len(apps)} apps")
        return await self.processor.execute_query(collector, list_apps, process_fn)
