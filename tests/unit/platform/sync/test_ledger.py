"""Unit tests for the ChangeLedger."""

import asyncio
from datetime import datetime, timezone

import pytest

from app_migrator.adapters.ledger_store.fake import InMemoryLedgerStore
from app_migrator.core.exceptions import LedgerError
from app_migrator.platform.sync import ChangeLedger
from app_migrator.schemas import ScopePath

WEB = ScopePath(org="acme", space="dev", item="web")
WORKER = ScopePath(org="acme", space="dev", item="worker")


class TestRecordSeen:
    """Test writes."""

    @pytest.mark.asyncio
    async def test_creates_intermediate_levels(self):
        """The first write for an org and space creates both levels."""
        ledger = ChangeLedger()

        await ledger.record_seen(WEB, "2021-06-22T20:18:36Z")

        assert ledger.dump() == {"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}}
        assert len(ledger) == 1

    @pytest.mark.asyncio
    async def test_normalizes_offsets_to_utc(self):
        """Timestamps with offsets are stored in UTC."""
        ledger = ChangeLedger()

        await ledger.record_seen(WEB, "2021-06-22T22:18:36+02:00")

        assert ledger.dump()["acme"]["dev"]["web"] == "2021-06-22T20:18:36Z"

    @pytest.mark.asyncio
    async def test_accepts_datetime(self):
        """A datetime is formatted like a string timestamp."""
        ledger = ChangeLedger()

        await ledger.record_seen(WEB, datetime(2021, 6, 22, 20, 18, 36, tzinfo=timezone.utc))

        assert ledger.last_seen(WEB) == datetime(2021, 6, 22, 20, 18, 36, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_invalid_timestamp_raises(self):
        """An unparseable timestamp is rejected and nothing is stored."""
        ledger = ChangeLedger()

        with pytest.raises(LedgerError, match="acme.dev.web"):
            await ledger.record_seen(WEB, "yesterday")
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_concurrent_writes_all_land(self):
        """Writes from many workers are all kept."""
        ledger = ChangeLedger()
        paths = [ScopePath(org="acme", space=f"s{i % 3}", item=f"app{i}") for i in range(30)]

        await asyncio.gather(*(ledger.record_seen(p, "2021-06-22T20:18:36Z") for p in paths))

        assert len(ledger) == 30


class TestComparison:
    """Test newer-remotely / newer-locally checks."""

    @pytest.mark.asyncio
    async def test_unseen_item_is_newer_remotely(self):
        """A missing entry compares as the minimum timestamp."""
        ledger = ChangeLedger()

        assert ledger.last_seen(WEB) is None
        assert ledger.is_newer_remotely(WEB, "2000-01-01T00:00:00Z")
        assert not ledger.is_newer_locally(WEB, "2000-01-01T00:00:00Z")

    @pytest.mark.asyncio
    async def test_equal_timestamps_are_newer_in_neither_direction(self):
        """Comparisons are strict."""
        ledger = ChangeLedger()
        await ledger.record_seen(WEB, "2021-06-22T20:18:36Z")

        assert not ledger.is_newer_remotely(WEB, "2021-06-22T20:18:36Z")
        assert not ledger.is_newer_locally(WEB, "2021-06-22T20:18:36Z")

    @pytest.mark.asyncio
    async def test_later_remote_timestamp(self):
        """A later remote update is newer remotely."""
        ledger = ChangeLedger()
        await ledger.record_seen(WEB, "2021-06-22T20:18:36Z")

        assert ledger.is_newer_remotely(WEB, "2021-06-22T20:18:37Z")
        assert ledger.is_newer_locally(WEB, "2021-06-22T20:18:35Z")

    @pytest.mark.asyncio
    async def test_recording_later_time_flips_the_check(self):
        """After recording the remote time the item is no longer newer remotely."""
        ledger = ChangeLedger()
        remote = "2021-06-23T08:00:00Z"
        assert ledger.is_newer_remotely(WORKER, remote)

        await ledger.record_seen(WORKER, remote)

        assert not ledger.is_newer_remotely(WORKER, remote)

    def test_missing_remote_timestamp_is_never_newer(self):
        """A remote item without a timestamp compares as the minimum."""
        ledger = ChangeLedger({"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}})

        assert not ledger.is_newer_remotely(WEB, None)
        assert ledger.is_newer_locally(WEB, None)


class TestSnapshots:
    """Test load/dump and store round trips."""

    def test_load_rejects_non_mapping(self):
        """A snapshot must be a mapping."""
        with pytest.raises(LedgerError):
            ChangeLedger().load(["acme"])

    def test_load_rejects_wrong_depth(self):
        """Each level must be a mapping down to string timestamps."""
        with pytest.raises(LedgerError):
            ChangeLedger().load({"acme": {"dev": "2021-06-22T20:18:36Z"}})
        with pytest.raises(LedgerError):
            ChangeLedger().load({"acme": {"dev": {"web": 12}}})

    def test_load_none_empties_the_ledger(self):
        """Loading None resets to empty."""
        ledger = ChangeLedger({"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}})

        ledger.load(None)

        assert len(ledger) == 0

    def test_dump_is_a_copy(self):
        """Mutating a dump does not change the ledger."""
        ledger = ChangeLedger({"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}})

        ledger.dump()["acme"]["dev"]["web"] = "tampered"

        assert ledger.dump()["acme"]["dev"]["web"] == "2021-06-22T20:18:36Z"

    @pytest.mark.asyncio
    async def test_round_trip_through_store(self):
        """What one run saves, the next run loads."""
        store = InMemoryLedgerStore()
        first_run = ChangeLedger()
        await first_run.record_seen(WEB, "2021-06-22T20:18:36Z")
        await first_run.record_seen(WORKER, "2021-06-22T21:16:44Z")

        await first_run.save_to(store)
        second_run = await ChangeLedger().load_from(store)

        assert store.saves == 1
        assert second_run.dump() == first_run.dump()
        assert not second_run.is_newer_remotely(WEB, "2021-06-22T20:18:36Z")
