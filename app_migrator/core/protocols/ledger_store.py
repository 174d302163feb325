"""LedgerStore protocol for persisting the change ledger between runs.

The ledger itself is an in-memory structure; a store only moves its nested
``org -> space -> item -> timestamp`` snapshot to and from durable storage.
"""

from typing import Dict, Protocol, runtime_checkable

LedgerSnapshot = Dict[str, Dict[str, Dict[str, str]]]


@runtime_checkable
class LedgerStore(Protocol):
    """Protocol for loading and saving ledger snapshots."""

    async def load(self) -> LedgerSnapshot:
        """Load the last saved snapshot; an absent snapshot loads as ``{}``."""
        ...

    async def save(self, snapshot: LedgerSnapshot) -> None:
        """Persist a snapshot, replacing the previous one."""
        ...
