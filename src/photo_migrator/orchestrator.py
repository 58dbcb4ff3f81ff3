"""Migration orchestrator.

Coordinates the whole run:
- Scan the source tree
- Resolve directories (sequentially or in worker threads)
- Schedule resolved items into memory-aware batches
- Hand batches to the asset sink
- Aggregate the summary
"""

import logging
import threading
import time
import uuid
from contextlib import closing
from pathlib import Path
from queue import Empty, Queue
from typing import Any, Dict, Iterator, List, Optional, Set

from photo_migrator.common import LogContext
from .batch_scheduler import BatchScheduler
from .cancellation import CancellationToken
from .checkpoint import Checkpoint
from .config import MigratorConfig
from .coordinator import DirectoryResult, ResolveContext
from .discovery import ScanResult, scan_tree
from .errors import ImportFailedError, IssueCategory
from .memory_monitor import MemoryPressureMonitor, PressureChangeEvent, PressureThresholds, PsutilMemorySource
from .models import Batch, BatchItem, DirectoryListing
from .parallel import DirectoryQueues, process_listing, worker_thread_main
from .progress import ProgressTracker
from .sinks import AssetSink, ImportOutcome
from .summary import STATUS_CANCELLED, STATUS_COMPLETED, MigrationSummary

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """Runs one migration from a source tree into an asset sink.

    Architecture:
    - Scan on the calling thread
    - N worker threads resolve directories (sequential when N <= 1)
    - The calling thread schedules batches, imports and owns the summary
    - A memory monitor sizes batches; its events arrive on a queue

    Configuration:
    - runtime.worker_threads: N
    - runtime.queue_maxsize: directories in flight between workers and scheduler
    - batch.*: batch sizing and pacing
    """

    def __init__(
        self,
        config: MigratorConfig,
        sink: AssetSink,
        monitor: Optional[MemoryPressureMonitor] = None,
        cancel_token: Optional[CancellationToken] = None,
        memory_source: Any = None,
        checkpoint: Optional[Checkpoint] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Run configuration
            sink: Destination for resolved items
            monitor: Memory monitor (default: built from ``config.memory``)
            cancel_token: Cancellation shared with the caller
            memory_source: Memory source for the default monitor
                (default: ``PsutilMemorySource``)
            checkpoint: Resume checkpoint (default: from
                ``runtime.checkpoint_path`` when set)
        """
        self.config = config
        self.sink = sink
        self.cancel_token = cancel_token or CancellationToken()

        self._owns_monitor = monitor is None
        if monitor is None:
            source = memory_source or PsutilMemorySource(budget_mb=config.memory.budget_mb)
            monitor = MemoryPressureMonitor(
                source,
                thresholds=PressureThresholds.from_config(config.memory),
                sample_interval=config.memory.sample_interval_seconds,
            )
        self.monitor = monitor

        self._owns_checkpoint = checkpoint is None and config.runtime.checkpoint_path is not None
        if self._owns_checkpoint:
            checkpoint = Checkpoint(Path(config.runtime.checkpoint_path))
        self.checkpoint = checkpoint

        self.context = ResolveContext.from_config(config)
        self._events: Queue = Queue()
        self.monitor.subscribe(self._events.put)

        logger.info(
            f"Initialized MigrationOrchestrator: {{'threads': {config.runtime.worker_threads}, "
            f"'queue_maxsize': {config.runtime.queue_maxsize}, 'initial_batch_size': {config.batch.initial_size}}}"
        )

    def run(self, source_path: Path) -> MigrationSummary:
        """Migrate every media file under ``source_path``.

        Args:
            source_path: Root of the extracted archive

        Returns:
            Finalized MigrationSummary with status 'completed' or 'cancelled'

        Raises:
            EnumerationError: If the source root cannot be read
        """
        summary = MigrationSummary(run_id=str(uuid.uuid4()))

        with LogContext(logger, run_id=summary.run_id):
            logger.info(f"Starting migration: {{'path': {str(source_path)!r}}}")
            self.monitor.reset_peak()
            started_sampler = self._owns_monitor and self.config.memory.sample_interval_seconds > 0
            if started_sampler:
                self.monitor.start()
            try:
                status = self._run(Path(source_path), summary)
            finally:
                if started_sampler:
                    self.monitor.stop()
                if self._owns_checkpoint:
                    self.checkpoint.close()

            self._drain_events(summary)
            summary.peak_memory_bytes = self.monitor.peak_usage_bytes
            summary.record_issue(IssueCategory.PRESSURE_SAMPLING.value, self.monitor.sampling_failures)
            summary.finalize(status)

        return summary

    def _run(self, source_path: Path, summary: MigrationSummary) -> str:
        # Phase 1: scan
        logger.info("Phase 1: Scanning source tree...")
        phase_start = time.time()
        scan = scan_tree(
            source_path,
            classifier=self.context.classifier,
            skip_hidden=self.config.scan.skip_hidden,
            cancel_token=self.cancel_token,
        )
        summary.total_items = scan.media_count
        summary.sidecars_discovered = scan.sidecar_count
        summary.record_issue(IssueCategory.UNREADABLE_DIRECTORY.value, len(scan.unreadable_directories))
        logger.info(
            f"Scan finished: {{'directories': {len(scan.listings)}, 'media': {scan.media_count}, "
            f"'duration_seconds': {time.time() - phase_start:.1f}}}"
        )

        if scan.cancelled:
            return STATUS_CANCELLED
        if scan.media_count == 0:
            logger.warning("No media files found to migrate")

        # Phase 2: resolve and import
        logger.info("Phase 2: Resolving and importing media...")
        phase_start = time.time()
        progress = ProgressTracker(scan.media_count, log_interval=self.config.runtime.progress_log_interval)
        matched_sidecars: Set[Path] = set()
        albums: Set[str] = set()
        stream_state = {"exhausted": False}

        scheduler = BatchScheduler(self.monitor, self.config.batch, self.cancel_token)
        with closing(self._item_stream(scan, summary, matched_sidecars, progress, stream_state)) as items:
            report = scheduler.run(
                items,
                lambda batch: self._consume(batch, summary, albums, progress),
                on_boundary=lambda: self._drain_events(summary),
            )

        summary.batches_processed = report.batches
        summary.current_batch_size = report.last_batch_size
        summary.batches_over_time = report.batches_over_time
        summary.albums_created = len(albums)
        summary.sidecars_matched = len(matched_sidecars)
        summary.sidecars_unmatched = max(0, scan.sidecar_count - len(matched_sidecars))
        progress.log_final_summary()
        logger.info(
            f"Import finished: {{'batches': {report.batches}, 'size_changes': {report.size_changes}, "
            f"'duration_seconds': {time.time() - phase_start:.1f}}}"
        )

        # Cancellation that lands after the last item was emitted changes nothing
        if report.cancelled or not stream_state["exhausted"]:
            return STATUS_CANCELLED

        summary.record_issue(IssueCategory.UNMATCHED_SIDECAR.value, summary.sidecars_unmatched)
        return STATUS_COMPLETED

    def _item_stream(
        self,
        scan: ScanResult,
        summary: MigrationSummary,
        matched_sidecars: Set[Path],
        progress: ProgressTracker,
        stream_state: Dict[str, bool],
    ) -> Iterator[BatchItem]:
        """Resolved items in discovery order; bookkeeping happens as directories arrive.

        Sets ``stream_state["exhausted"]`` once every directory has been consumed.
        """
        consumed = 0
        with closing(self._resolved(scan.listings)) as outcomes:
            for outcome in outcomes:
                consumed += 1
                if outcome["type"] == "error":
                    media_count = outcome["media_count"]
                    logger.warning(
                        f"Directory failed: {{'directory': {outcome['relative_path']!r}, "
                        f"'category': {outcome['error_category']!r}, 'media': {media_count}}}"
                    )
                    summary.record_issue(outcome["error_category"], media_count)
                    summary.processed_items += media_count
                    summary.failed_items += media_count
                    progress.increment(media_count)
                    continue

                result: DirectoryResult = outcome["result"]
                if result.cancelled:
                    return
                summary.merge_issues(result.issues)
                if result.failed_files:
                    summary.processed_items += result.failed_files
                    summary.failed_items += result.failed_files
                    progress.increment(result.failed_files)
                summary.pairs_reconstructed += result.pairs
                matched_sidecars.update(result.sidecars_matched)

                for item in result.items:
                    if self.checkpoint is not None and all(i in self.checkpoint for i in item.asset_ids):
                        summary.skipped_items += item.file_count
                        progress.increment(item.file_count)
                        continue
                    yield item
        stream_state["exhausted"] = consumed == len(scan.listings)

    def _resolved(self, listings: List[DirectoryListing]) -> Iterator[Dict[str, Any]]:
        if self.config.runtime.worker_threads <= 1:
            for listing in listings:
                if self.cancel_token.is_cancelled:
                    return
                yield process_listing(listing, self.context, self.cancel_token)
        else:
            yield from self._resolved_parallel(listings)

    def _resolved_parallel(self, listings: List[DirectoryListing]) -> Iterator[Dict[str, Any]]:
        """Resolve in worker threads and re-sequence results by directory index."""
        thread_count = self.config.runtime.worker_threads
        queues = DirectoryQueues(max_in_flight=self.config.runtime.queue_maxsize)
        shutdown_event = threading.Event()

        workers = []
        for thread_id in range(thread_count):
            worker = threading.Thread(
                target=worker_thread_main,
                args=(thread_id, queues.work_queue, queues.results_queue, self.context, self.cancel_token,
                      shutdown_event),
                name=f"resolver-{thread_id}",
                daemon=True,
            )
            worker.start()
            workers.append(worker)
        logger.debug(f"Started worker threads: {{'count': {thread_count}, 'max_in_flight': {queues.max_in_flight}}}")

        pending: Dict[int, Dict[str, Any]] = {}
        next_submit = 0
        next_emit = 0
        try:
            while next_emit < len(listings):
                if self.cancel_token.is_cancelled:
                    return
                while next_submit < len(listings) and queues.try_submit(listings[next_submit]):
                    next_submit += 1

                outcome = queues.next_result(timeout=0.1)
                if outcome is None:
                    if not any(w.is_alive() for w in workers):
                        raise RuntimeError("All worker threads exited before resolution finished")
                    logger.debug(f"Waiting for resolver threads: {{'next_index': {next_emit}, "
                                 f"'buffered': {len(pending)}, 'queues': {queues.stats()}}}")
                    continue
                pending[outcome["index"]] = outcome

                while next_emit in pending:
                    outcome = pending.pop(next_emit)
                    next_emit += 1
                    queues.release()
                    yield outcome
        finally:
            queues.stop_workers(len(workers))
            shutdown_event.set()
            for worker in workers:
                worker.join(timeout=5.0)
            logger.debug("Worker threads stopped")

    def _consume(self, batch: Batch, summary: MigrationSummary, albums: Set[str], progress: ProgressTracker) -> None:
        completed_ids: List[str] = []
        for item in batch.items:
            try:
                outcome = self.sink.import_item(item)
            except ImportFailedError as e:
                outcome = ImportOutcome(success=False, error=e.message)
            except Exception as e:
                logger.error(f"Import raised for {item.asset.relative_path}: {e}", exc_info=True)
                outcome = ImportOutcome(success=False, error=str(e))

            files = item.file_count
            summary.processed_items += files
            if outcome.success:
                summary.succeeded_items += files
                completed_ids.extend(item.asset_ids)
                if item.album_label:
                    albums.add(item.album_label)
            else:
                summary.failed_items += files
                summary.record_issue(IssueCategory.IMPORT_FAILED.value)
                logger.warning(
                    f"Import failed: {{'asset': {item.asset.relative_path!r}, 'error': {outcome.error!r}}}"
                )

        if self.checkpoint is not None:
            self.checkpoint.record(completed_ids)
        progress.increment(batch.file_count)

    def _drain_events(self, summary: MigrationSummary) -> None:
        while True:
            try:
                event: PressureChangeEvent = self._events.get_nowait()
            except Empty:
                return
            summary.pressure_events += 1
            logger.debug(
                f"Pressure event: {{'previous': {event.previous.label!r}, 'current': {event.current.label!r}}}"
            )
