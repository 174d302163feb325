"""In-memory ledger store for testing."""

import copy
from typing import List, Optional

from app_migrator.core.protocols import LedgerSnapshot


class InMemoryLedgerStore:
    """Test implementation of LedgerStore.

    Usage:
        store = InMemoryLedgerStore({"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}})
        ledger = await ChangeLedger().load_from(store)
        ...
        await ledger.save_to(store)
        assert store.saves == 1
    """

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None) -> None:
        """Initialize with an optional starting snapshot."""
        self.snapshot: LedgerSnapshot = copy.deepcopy(snapshot or {})
        self.history: List[LedgerSnapshot] = []

    async def load(self) -> LedgerSnapshot:
        """Return a copy of the current snapshot."""
        return copy.deepcopy(self.snapshot)

    async def save(self, snapshot: LedgerSnapshot) -> None:
        """Replace the current snapshot and log the save."""
        self.snapshot = copy.deepcopy(snapshot)
        self.history.append(copy.deepcopy(snapshot))

    @property
    def saves(self) -> int:
        """Number of saves performed."""
        return len(self.history)
