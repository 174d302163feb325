"""Export every app in a space through the paged query pipeline."""

from typing import Optional

from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.core.protocols import ControlPlaneClient
from app_migrator.platform.sync.collector import QueryResultsCollector
from app_migrator.platform.sync.query_processor import (
    BoundedQueryProcessor,
    OutcomeStream,
    ProcessFunc,
)
from app_migrator.platform.transport import RetryingTransport
from app_migrator.schemas import QueryResult, Space


class SpaceExporter:
    """Lists a space's apps page by page and hands each one to a process function.

    Each page requests ``results_per_page`` apps, which is also the capacity of
    the collector, so one page always fits the buffer.
    """

    def __init__(
        self,
        client: ControlPlaneClient,
        processor: BoundedQueryProcessor,
        transport: RetryingTransport,
        results_per_page: Optional[int] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the exporter.

        Args:
            client: Client for the control plane apps are exported from
            processor: Query processor running the worker pool
            transport: Retrying transport wrapping every page call
            results_per_page: Page size; defaults to the processor's concurrency limit
            logger: Contextual logger
        """
        self.client = client
        self.processor = processor
        self.transport = transport
        self.results_per_page = results_per_page or processor.concurrency_limit
        self.logger = logger or default_logger.with_context(component="space_exporter")

    async def export_space(self, space: Space, process_fn: ProcessFunc) -> OutcomeStream:
        """Start exporting a space; each QueryResult carries one ``App``."""
        space_logger = self.logger.with_context(space=space.name, space_guid=space.guid)
        space_logger.info(f"Listing apps in space {space.name}")

        def list_apps(page: int, collector: QueryResultsCollector):
            async def run_page() -> int:
                params = {
                    "q": [f"space_guid:{space.guid}"],
                    "results-per-page": collector.results_per_page,
                    "page": page,
                }
                apps = await self.transport.call(self.client.list_apps_by_query, params)
                for app in apps:
                    await collector.add_result(QueryResult(value=app))
                space_logger.debug(f"Page {page} of space {space.name}: {len(apps)} apps")
                return len(apps)

            return run_page

        return await self.processor.execute_page_query(
            QueryResultsCollector(self.results_per_page), list_apps, process_fn
        )
