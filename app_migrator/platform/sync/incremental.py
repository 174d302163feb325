"""Incremental runs: skip unchanged apps and feed outcomes to the summary and ledger."""

from typing import Any, Callable, Optional

from app_migrator.core.logging import ContextualLogger
from app_migrator.core.logging import logger as default_logger
from app_migrator.platform.sync.ledger import ChangeLedger
from app_migrator.platform.sync.query_processor import OutcomeStream, ProcessFunc
from app_migrator.platform.sync.summary import Summary
from app_migrator.schemas import ProcessOutcome, QueryResult, ScopePath

SKIPPED = "skipped"

PathOf = Callable[[QueryResult], ScopePath]


def item_name(value: Any) -> str:
    """Name of a work item value: its ``name`` attribute, else its string form."""
    name = getattr(value, "name", None)
    return name if isinstance(name, str) else str(value)


def item_updated_at(value: Any) -> Optional[str]:
    """Remote last-update timestamp of a work item value, if it has one."""
    return getattr(value, "updated_at", None)


def scope_path_for(org_name: str, space_name: str) -> PathOf:
    """Build a ``path_of`` for items that all live in one org and space."""

    def path_of(item: QueryResult) -> ScopePath:
        return ScopePath(org=org_name, space=space_name, item=item_name(item.value))

    return path_of


class IncrementalFilter:
    """Wraps a process function so apps unchanged since the last run are skipped.

    A skipped app still yields a successful outcome whose value is ``SKIPPED``.
    """

    def __init__(
        self,
        ledger: ChangeLedger,
        path_of: PathOf,
        updated_at_of: Callable[[Any], Optional[str]] = item_updated_at,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the filter.

        Args:
            ledger: Ledger loaded from the previous run
            path_of: Maps a work item to its org/space/app path
            updated_at_of: Extracts the remote timestamp from an item value
            logger: Contextual logger
        """
        self.ledger = ledger
        self.path_of = path_of
        self.updated_at_of = updated_at_of
        self.logger = logger or default_logger.with_context(component="incremental_filter")

    def needs_processing(self, item: QueryResult) -> bool:
        """Whether the item changed remotely since it was last seen."""
        return self.ledger.is_newer_remotely(
            self.path_of(item), self.updated_at_of(item.value)
        )

    def wrap(self, process_fn: ProcessFunc) -> ProcessFunc:
        """Return a process function that only calls ``process_fn`` for changed items."""

        async def process(item: QueryResult) -> ProcessOutcome:
            if not self.needs_processing(item):
                self.logger.info(
                    f"App {self.path_of(item).key} has not been updated since the latest run, "
                    "skip it"
                )
                return ProcessOutcome(item=item, value=SKIPPED)
            return await process_fn(item)

        return process


async def drain_into_summary(
    stream: OutcomeStream,
    summary: Summary,
    path_of: PathOf,
    ledger: Optional[ChangeLedger] = None,
    updated_at_of: Callable[[Any], Optional[str]] = item_updated_at,
) -> int:
    """Consume a stream, recording each outcome in the summary and the ledger.

    Successful, non-skipped items with a remote timestamp are recorded in the
    ledger as they land. A fatal stream error is re-raised once every outcome
    produced before it has been recorded.

    Returns:
        Number of outcomes consumed.
    """

    def outcome_path(outcome: ProcessOutcome) -> ScopePath:
        return path_of(outcome.item)

    consumed = 0
    async for outcome in stream:
        consumed += 1
        await summary.record(outcome, outcome_path)
        if ledger is None or not outcome.ok or outcome.value == SKIPPED:
            continue
        updated_at = updated_at_of(outcome.item.value)
        if updated_at:
            await ledger.record_seen(outcome_path(outcome), updated_at)
    return consumed
