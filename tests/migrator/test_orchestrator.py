"""End-to-end tests for MigrationOrchestrator."""

import pytest

from photo_migrator.cancellation import CancellationToken
from photo_migrator.errors import EnumerationError, ImportFailedError, IssueCategory
from photo_migrator.orchestrator import MigrationOrchestrator
from photo_migrator.summary import STATUS_CANCELLED, STATUS_COMPLETED


def build_album(takeout, directory, count, prefix="img"):
    return [takeout.file(f"{directory}/{prefix}_{i:03d}.jpg") for i in range(count)]


def migrate(config, sink, fake_memory, root, ratios=(0.1,), **kwargs):
    orchestrator = MigrationOrchestrator(config, sink, memory_source=fake_memory(list(ratios)), **kwargs)
    return orchestrator.run(root)


class TestMigrationOrchestrator:
    """Tests for MigrationOrchestrator.run()."""

    def test_live_pair_in_album(self, takeout, make_config, recording_sink, fake_memory, utc):
        """A still, its motion component and one shared sidecar migrate as one paired item."""
        takeout.jpeg("Trip/IMG_0001.JPG")
        takeout.sidecar("Trip/IMG_0001.JPG.json", taken=utc(2023, 6, 1, 12, 0, 0))
        takeout.file("Trip/IMG_0001.MP")

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.total_items == 2
        assert summary.processed_items == 2
        assert summary.succeeded_items == 2
        assert summary.pairs_reconstructed == 1
        assert summary.albums_created == 1
        assert summary.sidecars_discovered == 1
        assert summary.sidecars_matched == 1
        assert summary.sidecars_unmatched == 0
        assert summary.issues == {}

        assert len(recording_sink.items) == 1
        item = recording_sink.items[0]
        assert item.album_label == "Trip"
        assert item.motion_asset.path.name == "IMG_0001.MP"

    def test_file_without_metadata(self, takeout, make_config, recording_sink, fake_memory):
        takeout.file("clip.mp4")

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.succeeded_items == 1
        assert summary.issues == {IssueCategory.NO_METADATA_SOURCE.value: 1}
        assert summary.albums_created == 0

    def test_empty_tree(self, takeout, make_config, recording_sink, fake_memory):
        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.total_items == 0
        assert summary.batches_processed == 0
        assert recording_sink.items == []

    def test_missing_source_raises(self, tmp_path, make_config, recording_sink, fake_memory):
        with pytest.raises(EnumerationError):
            migrate(make_config(), recording_sink, fake_memory, tmp_path / "missing")

    def test_unmatched_sidecar(self, takeout, make_config, recording_sink, fake_memory):
        takeout.file("Album/a.jpg")
        takeout.sidecar("Album/a.jpg.json", title="a")
        takeout.sidecar("Album/ghost.png.json", title="ghost")

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.sidecars_discovered == 2
        assert summary.sidecars_matched == 1
        assert summary.sidecars_unmatched == 1
        assert summary.issues[IssueCategory.UNMATCHED_SIDECAR.value] == 1

    def test_counters_identical_across_runs(self, takeout, make_config, sink_factory, fake_memory, utc):
        """Two runs over an unchanged tree agree on every counter."""
        takeout.jpeg("Trip/IMG_0001.JPG")
        takeout.sidecar("Trip/IMG_0001.JPG.json", taken=utc(2023, 6, 1))
        takeout.file("Trip/IMG_0001.MP")
        build_album(takeout, "Album", 12)
        takeout.file("Album/stray.MP")

        first = migrate(make_config(), sink_factory(), fake_memory, takeout.root)
        second = migrate(make_config(), sink_factory(), fake_memory, takeout.root)

        assert first.counters() == second.counters()
        assert first.run_id != second.run_id

    def test_batches_cover_every_file(self, takeout, make_config, recording_sink, fake_memory):
        build_album(takeout, "A", 15)
        build_album(takeout, "B", 12)

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.processed_items == 27
        assert summary.processed_items + summary.skipped_items == summary.total_items
        assert summary.batches_processed >= 3
        assert len(set(i.asset.asset_id for i in recording_sink.items)) == 27

    def test_parallel_matches_sequential(self, takeout, make_config, sink_factory, fake_memory):
        """Worker threads change nothing about order or counters."""
        for name in ["Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta"]:
            build_album(takeout, name, 4)
        takeout.jpeg("Beta/live.jpg")
        takeout.file("Beta/live.MP")

        sequential_sink = sink_factory()
        parallel_sink = sink_factory()
        sequential = migrate(make_config(), sequential_sink, fake_memory, takeout.root)
        parallel = migrate(
            make_config(runtime={"worker_threads": 3, "queue_maxsize": 2}),
            parallel_sink,
            fake_memory,
            takeout.root,
        )

        assert parallel.counters() == sequential.counters()
        assert [i.asset.relative_path for i in parallel_sink.items] == [
            i.asset.relative_path for i in sequential_sink.items
        ]

    def test_import_failures_stay_with_item(self, takeout, make_config, sink_factory, fake_memory):
        build_album(takeout, "Album", 5)
        sink = sink_factory(fail_names=["img_001.jpg"], raise_names=["img_003.jpg"])

        summary = migrate(make_config(), sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.processed_items == 5
        assert summary.succeeded_items == 3
        assert summary.failed_items == 2
        assert summary.issues[IssueCategory.IMPORT_FAILED.value] == 2
        assert len(sink.items) == 5

    def test_store_error_counts_as_import_failure(self, takeout, make_config, sink_factory, fake_memory):
        build_album(takeout, "Album", 3)

        def reject(item):
            if item.asset.path.name == "img_001.jpg":
                raise ImportFailedError("quota exceeded", asset=item.asset.relative_path)

        sink = sink_factory(on_import=reject)

        summary = migrate(make_config(), sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.succeeded_items == 2
        assert summary.failed_items == 1
        assert summary.issues[IssueCategory.IMPORT_FAILED.value] == 1

    def test_cancellation_finishes_current_batch(self, takeout, make_config, sink_factory, fake_memory):
        build_album(takeout, "Album", 30)
        token = CancellationToken()
        sink = sink_factory(on_import=lambda item: token.cancel())

        summary = migrate(
            make_config(batch={"adaptive": False}), sink, fake_memory, takeout.root, cancel_token=token
        )

        assert summary.status == STATUS_CANCELLED
        assert summary.processed_items == 10
        assert summary.processed_items < summary.total_items
        assert IssueCategory.UNMATCHED_SIDECAR.value not in summary.issues

    def test_cancellation_during_final_batch_completes(self, takeout, make_config, sink_factory, fake_memory):
        """A cancel request that arrives after every item was handed out does not mark the run cancelled."""
        build_album(takeout, "Album", 3)
        token = CancellationToken()
        sink = sink_factory(on_import=lambda item: token.cancel())

        summary = migrate(make_config(), sink, fake_memory, takeout.root, cancel_token=token)

        assert summary.status == STATUS_COMPLETED
        assert summary.processed_items == 3
        assert summary.succeeded_items == 3

    def test_cancelled_before_run(self, takeout, make_config, recording_sink, fake_memory):
        build_album(takeout, "Album", 3)
        token = CancellationToken()
        token.cancel()

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root, cancel_token=token)

        assert summary.status == STATUS_CANCELLED
        assert recording_sink.items == []

    def test_resume_from_checkpoint(self, takeout, tmp_path, make_config, sink_factory, fake_memory):
        """A cancelled run resumes where it stopped; completed files are skipped."""
        build_album(takeout, "Album", 25)
        checkpoint = tmp_path / "state" / "checkpoint.txt"
        config = make_config(batch={"adaptive": False}, runtime={"checkpoint_path": str(checkpoint)})

        token = CancellationToken()
        first = migrate(
            config, sink_factory(on_import=lambda item: token.cancel()), fake_memory, takeout.root,
            cancel_token=token,
        )
        assert first.status == STATUS_CANCELLED
        assert first.succeeded_items == 10

        sink = sink_factory()
        second = migrate(config, sink, fake_memory, takeout.root)

        assert second.status == STATUS_COMPLETED
        assert second.skipped_items == 10
        assert second.processed_items == 15
        assert second.processed_items + second.skipped_items == second.total_items
        assert len(sink.items) == 15

    def test_checkpoint_retries_failures(self, takeout, tmp_path, make_config, sink_factory, fake_memory):
        build_album(takeout, "Album", 4)
        config = make_config(runtime={"checkpoint_path": str(tmp_path / "checkpoint.txt")})

        migrate(config, sink_factory(fail_names=["img_002.jpg"]), fake_memory, takeout.root)
        sink = sink_factory()
        second = migrate(config, sink, fake_memory, takeout.root)

        assert second.skipped_items == 3
        assert sink.names == ["img_002.jpg"]

    def test_directory_failure_counts_its_files(self, takeout, make_config, recording_sink, fake_memory, monkeypatch):
        build_album(takeout, "Broken", 3)
        build_album(takeout, "Fine", 2)
        orchestrator = MigrationOrchestrator(make_config(), recording_sink, memory_source=fake_memory([0.1]))
        original = orchestrator.context.album_resolver.resolve

        def resolve(relative_dir):
            if relative_dir == "Broken":
                raise RuntimeError("resolver bug")
            return original(relative_dir)

        monkeypatch.setattr(orchestrator.context.album_resolver, "resolve", resolve)

        summary = orchestrator.run(takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.processed_items == 5
        assert summary.failed_items == 3
        assert summary.succeeded_items == 2
        assert summary.issues[IssueCategory.ASSET_PROCESSING.value] == 3

    def test_normalization_collision_fails_one_file(self, takeout, make_config, recording_sink, fake_memory):
        takeout.file("Trip/caf\u00e9.jpg")
        takeout.file("Trip/cafe\u0301.jpg")
        takeout.file("Trip/other.jpg")

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root)

        assert summary.status == STATUS_COMPLETED
        assert summary.processed_items == 3
        assert summary.succeeded_items == 2
        assert summary.failed_items == 1
        assert summary.issues[IssueCategory.ASSET_PROCESSING.value] == 1
        assert "other.jpg" in [i.asset.path.name for i in recording_sink.items]

    def test_pressure_events_and_peak(self, takeout, make_config, recording_sink, fake_memory):
        build_album(takeout, "Album", 30)

        summary = migrate(make_config(), recording_sink, fake_memory, takeout.root, ratios=[0.125, 0.9375, 0.125])

        assert summary.status == STATUS_COMPLETED
        assert summary.pressure_events >= 2
        assert summary.peak_memory_bytes == 937_500
        assert summary.processed_items == 30

    def test_sampling_failures_are_reported(self, takeout, make_config, recording_sink, fake_memory):
        build_album(takeout, "Album", 5)

        summary = migrate(
            make_config(), recording_sink, fake_memory, takeout.root, ratios=[RuntimeError("no data")]
        )

        assert summary.status == STATUS_COMPLETED
        assert summary.succeeded_items == 5
        assert summary.issues[IssueCategory.PRESSURE_SAMPLING.value] >= 1
        assert summary.current_batch_size == 2

    def test_report_shape(self, takeout, make_config, recording_sink, fake_memory):
        takeout.file("Album/a.jpg")

        report = migrate(make_config(), recording_sink, fake_memory, takeout.root).build_report()

        assert report["status"] == STATUS_COMPLETED
        assert report["items"]["total"] == 1
        assert report["timestamps"]["end"] is not None
        assert set(report) == {"run_id", "status", "timestamps", "items", "sidecars", "issues", "batching", "memory"}
