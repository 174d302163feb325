"""Thread-safe sink of per-app migration results.

Counts successes and failures and keeps one message per org/space/app key.
Success counting, failure counting, and the results map each sit behind their
own lock so concurrent workers only contend on the piece they touch.

Recording the same key twice overwrites the message but bumps a counter again;
callers report each item once.
"""

import asyncio
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from app_migrator.schemas import MigrationResult, ProcessOutcome, ScopePath

SUCCESS_MESSAGE = "successful"


class Summary:
    """Aggregates ProcessOutcome results for the end-of-run report."""

    def __init__(self):
        """Initialize an empty summary."""
        self._results: Dict[ScopePath, str] = {}
        self._success_count = 0
        self._failure_count = 0
        self._duration: Optional[float] = None

        self._results_lock = asyncio.Lock()
        self._success_lock = asyncio.Lock()
        self._failure_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    async def add_success(self, path: ScopePath) -> None:
        """Record a successful item; an empty item name is ignored."""
        if not path.item:
            return
        async with self._success_lock:
            self._success_count += 1
        async with self._results_lock:
            self._results[path] = SUCCESS_MESSAGE

    async def add_failure(self, path: ScopePath, error: BaseException) -> None:
        """Record a failed item with its error; an empty item name is ignored."""
        if not path.item:
            return
        async with self._failure_lock:
            self._failure_count += 1
        async with self._results_lock:
            self._results[path] = str(error)

    async def record(
        self, outcome: ProcessOutcome, path_of: Callable[[ProcessOutcome], ScopePath]
    ) -> None:
        """Route an outcome to ``add_success`` or ``add_failure``."""
        path = path_of(outcome)
        if outcome.error is None:
            await self.add_success(path)
        else:
            await self.add_failure(path, outcome.error)

    def set_duration(self, seconds: float) -> None:
        """Set the wall-clock duration of the run."""
        self._duration = seconds

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    @property
    def success_count(self) -> int:
        """Number of successes recorded."""
        return self._success_count

    @property
    def failure_count(self) -> int:
        """Number of failures recorded."""
        return self._failure_count

    @property
    def duration(self) -> Optional[float]:
        """Wall-clock seconds of the run, if it has been set."""
        return self._duration

    def results(self) -> List[MigrationResult]:
        """Return a copy of every result, sorted by org, space, then app."""
        return sorted(
            MigrationResult(
                org_name=path.org,
                space_name=path.space,
                app_name=path.item,
                message=message,
            )
            for path, message in self._results.items()
        )

    # -------------------------------------------------------------------------
    # Report
    # -------------------------------------------------------------------------

    def render(self, console: Optional[Console] = None) -> None:
        """Print the run duration, totals and one row per app.

        Only the text before the first ``:`` of each message is shown; the full
        error is in the log.
        """
        console = console or Console()
        took = timedelta(seconds=round(self._duration or 0.0, 3))
        console.print(f"Migration took {took}")
        console.print(
            f"Summary: {self.success_count} successes, {self.failure_count} errors."
        )

        table = Table(show_header=True, header_style="bold")
        table.add_column("Org")
        table.add_column("Space")
        table.add_column("App")
        table.add_column("Result")
        for result in self.results():
            table.add_row(
                result.org_name,
                result.space_name,
                result.app_name,
                result.message.split(":")[0],
            )
        console.print(table)
