"""Unit tests for space export/import and incremental runs."""

import pytest

from app_migrator.adapters.control_plane.fake import FakeControlPlane
from app_migrator.core.exceptions import EmptyWorkSetError, QueryFailureError
from app_migrator.platform.sync import (
    SKIPPED,
    BoundedQueryProcessor,
    ChangeLedger,
    IncrementalFilter,
    SpaceExporter,
    SpaceImporter,
    Summary,
    drain_into_summary,
    scope_path_for,
)
from app_migrator.schemas import App, ProcessOutcome, QueryResult, ScopePath, Space

SPACE = Space(guid="space-1", name="dev", organization_guid="org-1")
OTHER_SPACE = Space(guid="space-2", name="prod", organization_guid="org-1")


def _app(name: str, updated_at=None, space: Space = SPACE) -> App:
    return App(guid=f"{space.guid}-{name}", name=name, space_guid=space.guid, updated_at=updated_at)


class _Recorder:
    """Process function recording the app names it was called with."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.seen = []

    async def __call__(self, item: QueryResult) -> ProcessOutcome:
        self.seen.append(item.value.name)
        if item.value.name in self.fail:
            raise RuntimeError(f"push failed: {item.value.name}")
        return ProcessOutcome(item=item, value="exported")


@pytest.fixture
def control_plane() -> FakeControlPlane:
    fake = FakeControlPlane()
    for i in range(7):
        fake.add_app(_app(f"app{i}"))
    fake.add_app(_app("elsewhere", space=OTHER_SPACE))
    return fake


class TestSpaceExporter:
    """Test paged export of a space."""

    @pytest.mark.asyncio
    async def test_exports_every_app_in_the_space(self, control_plane, fast_transport, mock_logger):
        """Every app in the space is processed once; other spaces are untouched."""
        processor = BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger)
        exporter = SpaceExporter(control_plane, processor, fast_transport, logger=mock_logger)
        recorder = _Recorder()

        stream = await exporter.export_space(SPACE, recorder)
        outcomes = await stream.collect()

        assert len(outcomes) == 7
        assert sorted(recorder.seen) == [f"app{i}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_requests_pages_of_collector_size(
        self, control_plane, fast_transport, mock_logger
    ):
        """Pages 1..n are requested with the page size, ending on an empty page."""
        processor = BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger)
        exporter = SpaceExporter(control_plane, processor, fast_transport, logger=mock_logger)

        stream = await exporter.export_space(SPACE, _Recorder())
        await stream.collect()

        params = [args[0] for args in control_plane.calls_to("list_apps_by_query")]
        assert [p["page"] for p in params] == [1, 2, 3, 4]
        assert {p["results-per-page"] for p in params} == {3}
        assert params[0]["q"] == ["space_guid:space-1"]

    @pytest.mark.asyncio
    async def test_custom_page_size(self, control_plane, fast_transport, mock_logger):
        """An explicit page size overrides the concurrency limit."""
        processor = BoundedQueryProcessor(concurrency_limit=2, logger=mock_logger)
        exporter = SpaceExporter(
            control_plane, processor, fast_transport, results_per_page=5, logger=mock_logger
        )

        stream = await exporter.export_space(SPACE, _Recorder())

        assert len(await stream.collect()) == 7
        assert control_plane.call_count("list_apps_by_query") == 3

    @pytest.mark.asyncio
    async def test_listing_failure_surfaces(self, control_plane, fast_transport, mock_logger):
        """A permanent listing error ends the stream with QueryFailureError."""
        control_plane.fail_next("list_apps_by_query", PermissionError("forbidden"))
        processor = BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger)
        exporter = SpaceExporter(control_plane, processor, fast_transport, logger=mock_logger)

        stream = await exporter.export_space(SPACE, _Recorder())

        with pytest.raises(QueryFailureError):
            await stream.collect()


class TestSpaceImporter:
    """Test import of a known app list."""

    @pytest.mark.asyncio
    async def test_imports_every_app(self, mock_logger):
        """Every app handed in is processed once."""
        processor = BoundedQueryProcessor(concurrency_limit=2, logger=mock_logger)
        importer = SpaceImporter(processor, logger=mock_logger)
        recorder = _Recorder()
        apps = [_app(name) for name in ("web", "worker", "api", "cron", "admin")]

        stream = await importer.import_space(apps, recorder)
        outcomes = await stream.collect()

        assert len(outcomes) == 5
        assert sorted(recorder.seen) == ["admin", "api", "cron", "web", "worker"]

    @pytest.mark.asyncio
    async def test_empty_app_list_raises(self, mock_logger):
        """Importing nothing is an error."""
        importer = SpaceImporter(BoundedQueryProcessor(logger=mock_logger), logger=mock_logger)

        with pytest.raises(EmptyWorkSetError):
            await importer.import_space([], _Recorder())


class TestIncrementalRuns:
    """Test skipping unchanged apps and recording what ran."""

    @pytest.fixture
    def ledger(self) -> ChangeLedger:
        return ChangeLedger({"acme": {"dev": {"web": "2021-06-22T20:18:36Z"}}})

    @pytest.fixture
    def apps(self):
        return [
            _app("web", updated_at="2021-06-22T20:18:36Z"),
            _app("worker", updated_at="2021-06-23T08:00:00Z"),
            _app("api", updated_at="2021-06-21T00:00:00Z"),
        ]

    def test_needs_processing(self, ledger, apps, mock_logger):
        """Only apps changed since they were last seen need processing."""
        incremental = IncrementalFilter(ledger, scope_path_for("acme", "dev"), logger=mock_logger)

        assert not incremental.needs_processing(QueryResult(value=apps[0]))
        assert incremental.needs_processing(QueryResult(value=apps[1]))
        assert incremental.needs_processing(QueryResult(value=apps[2]))

    @pytest.mark.asyncio
    async def test_unchanged_apps_are_skipped(self, ledger, apps, mock_logger):
        """A skipped app succeeds without calling the wrapped process function."""
        path_of = scope_path_for("acme", "dev")
        recorder = _Recorder()
        process = IncrementalFilter(ledger, path_of, logger=mock_logger).wrap(recorder)
        importer = SpaceImporter(
            BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger), logger=mock_logger
        )
        summary = Summary()

        stream = await importer.import_space(apps, process)
        consumed = await drain_into_summary(stream, summary, path_of, ledger=ledger)

        assert consumed == 3
        assert sorted(recorder.seen) == ["api", "worker"]
        assert summary.success_count == 3
        assert ledger.dump()["acme"]["dev"] == {
            "web": "2021-06-22T20:18:36Z",
            "worker": "2021-06-23T08:00:00Z",
            "api": "2021-06-21T00:00:00Z",
        }

    @pytest.mark.asyncio
    async def test_failed_apps_are_not_recorded_as_seen(self, apps, mock_logger):
        """A failure is summarized but leaves the ledger untouched for that app."""
        ledger = ChangeLedger()
        path_of = scope_path_for("acme", "dev")
        importer = SpaceImporter(
            BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger), logger=mock_logger
        )
        summary = Summary()

        stream = await importer.import_space(apps, _Recorder(fail={"worker"}))
        await drain_into_summary(stream, summary, path_of, ledger=ledger)

        assert summary.success_count == 2
        assert summary.failure_count == 1
        assert ledger.last_seen(ScopePath("acme", "dev", "worker")) is None
        assert ledger.last_seen(ScopePath("acme", "dev", "web")) is not None
        failed = [r for r in summary.results() if r.app_name == "worker"]
        assert failed[0].message.startswith("push failed")

    @pytest.mark.asyncio
    async def test_skipped_marker_value(self, ledger, apps, mock_logger):
        """A skipped app's outcome carries the skipped marker."""
        process = IncrementalFilter(ledger, scope_path_for("acme", "dev"), logger=mock_logger).wrap(
            _Recorder()
        )

        outcome = await process(QueryResult(value=apps[0]))

        assert outcome.ok
        assert outcome.value == SKIPPED

    @pytest.mark.asyncio
    async def test_drain_without_ledger(self, apps, mock_logger):
        """Draining without a ledger only fills the summary."""
        importer = SpaceImporter(
            BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger), logger=mock_logger
        )
        summary = Summary()

        stream = await importer.import_space(apps, _Recorder())
        consumed = await drain_into_summary(stream, summary, scope_path_for("acme", "dev"))

        assert consumed == 3
        assert [r.app_name for r in summary.results()] == ["api", "web", "worker"]

    @pytest.mark.asyncio
    async def test_drain_reraises_listing_failure(
        self, control_plane, fast_transport, mock_logger
    ):
        """A listing failure surfaces from drain after earlier outcomes are recorded."""
        control_plane.fail_next("list_apps_by_query", PermissionError("forbidden"))
        processor = BoundedQueryProcessor(concurrency_limit=3, logger=mock_logger)
        exporter = SpaceExporter(control_plane, processor, fast_transport, logger=mock_logger)
        summary = Summary()

        stream = await exporter.export_space(SPACE, _Recorder())

        with pytest.raises(QueryFailureError):
            await drain_into_summary(stream, summary, scope_path_for("acme", "dev"))
        assert summary.success_count == 0
