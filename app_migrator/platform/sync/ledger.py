"""Change ledger: when each app was last seen, so repeated runs skip unchanged work.

The ledger is a three-level mapping, persisted between runs by a LedgerStore::

    {
        "acme": {                                   # org
            "dev": {                                # space
                "web": "2021-06-22T20:18:36Z",      # app : last seen
                "worker": "2021-06-22T21:16:44Z",
            }
        }
    }

A missing entry reads as the minimum timestamp, so an unseen app is always
newer remotely. Comparisons are strict: equal timestamps are newer in neither
direction.
"""

import asyncio
import copy
from datetime import datetime
from typing import Any, Dict, Optional, Union

from app_migrator.core.datetime_utils import (
    format_rfc3339,
    parse_rfc3339,
    parse_rfc3339_or_min,
)
from app_migrator.core.exceptions import LedgerError
from app_migrator.core.protocols import LedgerSnapshot, LedgerStore
from app_migrator.schemas import ScopePath

Timestamp = Union[str, datetime]


class ChangeLedger:
    """In-memory org -> space -> item -> last-seen timestamp map."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        """Create a ledger, optionally seeded from a snapshot."""
        self._entries: Dict[str, Dict[str, Dict[str, str]]] = {}
        self._lock = asyncio.Lock()
        if snapshot:
            self.load(snapshot)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    async def record_seen(self, path: ScopePath, timestamp: Timestamp) -> None:
        """Record the timestamp an item was last processed at.

        Intermediate org and space levels are created on first write.

        Raises:
            LedgerError: The timestamp is not valid RFC 3339.
        """
        try:
            normalized = format_rfc3339(parse_rfc3339(timestamp))
        except (TypeError, ValueError) as e:
            raise LedgerError(f"invalid timestamp {timestamp!r} for {path.key}") from e

        async with self._lock:
            spaces = self._entries.setdefault(path.org, {})
            items = spaces.setdefault(path.space, {})
            items[path.item] = normalized

    # -------------------------------------------------------------------------
    # Comparison
    # -------------------------------------------------------------------------

    def last_seen(self, path: ScopePath) -> Optional[datetime]:
        """Return when an item was last seen, or None if never."""
        raw = self._entries.get(path.org, {}).get(path.space, {}).get(path.item)
        if raw is None:
            return None
        return parse_rfc3339_or_min(raw)

    def is_newer_remotely(self, path: ScopePath, remote_timestamp: Timestamp) -> bool:
        """Whether the remote copy changed after the item was last seen."""
        return parse_rfc3339_or_min(remote_timestamp) > self._local(path)

    def is_newer_locally(self, path: ScopePath, remote_timestamp: Timestamp) -> bool:
        """Whether the ledger holds a later timestamp than the remote copy."""
        return parse_rfc3339_or_min(remote_timestamp) < self._local(path)

    def _local(self, path: ScopePath) -> datetime:
        raw = self._entries.get(path.org, {}).get(path.space, {}).get(path.item)
        return parse_rfc3339_or_min(raw)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def load(self, snapshot: Any) -> None:
        """Replace the contents with a nested snapshot.

        Raises:
            LedgerError: The snapshot is not a three-level string mapping.
        """
        if snapshot is None:
            snapshot = {}
        if not isinstance(snapshot, dict):
            raise LedgerError(f"ledger snapshot must be a mapping, got {type(snapshot).__name__}")

        entries: Dict[str, Dict[str, Dict[str, str]]] = {}
        for org, spaces in snapshot.items():
            if not isinstance(spaces, dict):
                raise LedgerError(f"ledger entry for org {org!r} must be a mapping")
            for space, items in spaces.items():
                if not isinstance(items, dict):
                    raise LedgerError(f"ledger entry for {org}.{space} must be a mapping")
                for item, timestamp in items.items():
                    if not isinstance(timestamp, str):
                        raise LedgerError(f"ledger timestamp for {org}.{space}.{item} not a string")
                    entries.setdefault(str(org), {}).setdefault(str(space), {})[str(item)] = (
                        timestamp
                    )
        self._entries = entries

    def dump(self) -> LedgerSnapshot:
        """Return a deep copy of the contents for persisting."""
        return copy.deepcopy(self._entries)

    async def load_from(self, store: LedgerStore) -> "ChangeLedger":
        """Load the contents from a store."""
        self.load(await store.load())
        return self

    async def save_to(self, store: LedgerStore) -> None:
        """Persist the contents to a store."""
        async with self._lock:
            snapshot = self.dump()
        await store.save(snapshot)

    def __len__(self) -> int:
        """Number of items tracked across every org and space."""
        return sum(len(items) for spaces in self._entries.values() for items in spaces.values())
