"""Query/processing pipeline, change ledger and result summary."""

from app_migrator.platform.sync.collector import QueryResultsCollector
from app_migrator.platform.sync.incremental import (
    SKIPPED,
    IncrementalFilter,
    drain_into_summary,
    scope_path_for,
)
from app_migrator.platform.sync.ledger import ChangeLedger
from app_migrator.platform.sync.query_processor import (
    BoundedQueryProcessor,
    OutcomeStream,
    PageQueryFunc,
    ProcessFunc,
    QueryFunc,
)
from app_migrator.platform.sync.space_exporter import SpaceExporter
from app_migrator.platform.sync.space_importer import SpaceImporter
from app_migrator.platform.sync.summary import Summary

__all__ = [
    "SKIPPED",
    "BoundedQueryProcessor",
    "ChangeLedger",
    "IncrementalFilter",
    "OutcomeStream",
    "PageQueryFunc",
    "ProcessFunc",
    "QueryFunc",
    "QueryResultsCollector",
    "SpaceExporter",
    "SpaceImporter",
    "Summary",
    "drain_into_summary",
    "scope_path_for",
]
