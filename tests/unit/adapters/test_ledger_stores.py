"""Unit tests for the ledger store adapters."""

import json

import pytest

from app_migrator.adapters.ledger_store import FileLedgerStore, InMemoryLedgerStore
from app_migrator.core.exceptions import LedgerError
from app_migrator.platform.sync import ChangeLedger
from app_migrator.schemas import ScopePath

SNAPSHOT = {"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}}


@pytest.fixture
def store(tmp_path):
    """Create a FileLedgerStore under a fresh directory."""
    return FileLedgerStore(tmp_path / "exports" / "metadata.json")


class TestFileLedgerStore:
    """Test the JSON file store."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, store):
        """A first run starts with an empty ledger."""
        assert await store.load() == {}

    @pytest.mark.asyncio
    async def test_empty_file_loads_empty(self, store):
        """An empty file is treated like a missing one."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("  \n")

        assert await store.load() == {}

    @pytest.mark.asyncio
    async def test_save_creates_directories_and_round_trips(self, store):
        """Saving creates parent directories and loads back identically."""
        await store.save(SNAPSHOT)

        assert store.path.exists()
        assert not store.path.with_name("metadata.json.tmp").exists()
        assert await store.load() == SNAPSHOT

    @pytest.mark.asyncio
    async def test_file_is_tab_indented_json(self, store):
        """The file is human-readable JSON."""
        await store.save(SNAPSHOT)

        raw = store.path.read_text()
        assert "\t" in raw
        assert json.loads(raw) == SNAPSHOT

    @pytest.mark.asyncio
    async def test_save_replaces_previous_contents(self, store):
        """A second save overwrites the first."""
        await store.save(SNAPSHOT)
        await store.save({"globex": {}})

        assert await store.load() == {"globex": {}}

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, store):
        """A corrupt file is a LedgerError, not an empty ledger."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        with pytest.raises(LedgerError):
            await store.load()

    @pytest.mark.asyncio
    async def test_ledger_round_trip(self, store):
        """A ledger saved by one run is loaded by the next."""
        ledger = ChangeLedger()
        await ledger.record_seen(ScopePath("acme", "dev", "web"), "2021-06-22T20:18:36Z")
        await ledger.record_seen(ScopePath("acme", "prod", "api"), "2021-06-23T08:00:00Z")

        await ledger.save_to(store)
        reloaded = await ChangeLedger().load_from(store)

        assert reloaded.dump() == ledger.dump()
        assert len(reloaded) == 2


class TestInMemoryLedgerStore:
    """Test the in-memory fake."""

    @pytest.mark.asyncio
    async def test_load_returns_copy(self):
        """Mutating a loaded snapshot does not change the store."""
        store = InMemoryLedgerStore(SNAPSHOT)

        loaded = await store.load()
        loaded["acme"]["dev"]["web"] = "tampered"

        assert (await store.load()) == SNAPSHOT

    @pytest.mark.asyncio
    async def test_records_history(self):
        """Each save is logged."""
        store = InMemoryLedgerStore()

        await store.save(SNAPSHOT)
        await store.save({})

        assert store.saves == 2
        assert store.history[0] == SNAPSHOT
        assert store.snapshot == {}
