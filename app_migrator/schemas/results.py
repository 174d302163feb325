"""Values flowing through the query pipeline and into the summary."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class QueryResult:
    """One unit of work produced by a query (typically one app)."""

    value: Any


@dataclass
class ProcessOutcome:
    """Result of processing one QueryResult; produced exactly once per item."""

    item: QueryResult
    error: Optional[BaseException] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        """Whether the item was processed without error."""
        return self.error is None


@dataclass(frozen=True, order=True)
class ScopePath:
    """Composite org/space/item key used by the ledger and the summary."""

    org: str
    space: str
    item: str

    @property
    def key(self) -> str:
        """Dotted form used as the summary key."""
        return f"{self.org}.{self.space}.{self.item}"


@dataclass(frozen=True, order=True)
class MigrationResult:
    """One row of the migration summary."""

    org_name: str
    space_name: str
    app_name: str
    message: str = field(default="", compare=False)
