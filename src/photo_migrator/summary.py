"""Migration summary report."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

# Excluded from counters(): these differ between otherwise identical runs
_VOLATILE_FIELDS = frozenset({
    'run_id',
    'started_at',
    'finished_at',
    'duration_seconds',
    'peak_memory_bytes',
    'pressure_events',
    'current_batch_size',
    'batches_processed',
    'batches_over_time',
})


@dataclass
class MigrationSummary:
    """Aggregate counters for one run.

    Item counters count media files: a still+motion pair contributes two.
    ``processed_items`` counts files handed to the store (succeeded plus
    failed). For a completed run ``processed_items + skipped_items`` equals
    ``total_items``.
    """
    run_id: str
    status: str = STATUS_RUNNING
    total_items: int = 0
    processed_items: int = 0
    succeeded_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    pairs_reconstructed: int = 0
    albums_created: int = 0
    sidecars_discovered: int = 0
    sidecars_matched: int = 0
    sidecars_unmatched: int = 0
    issues: Dict[str, int] = field(default_factory=dict)
    batches_processed: int = 0
    current_batch_size: int = 0
    batches_over_time: int = 0
    pressure_events: int = 0
    peak_memory_bytes: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    def record_issue(self, category: str, count: int = 1) -> None:
        if count > 0:
            self.issues[category] = self.issues.get(category, 0) + count

    def merge_issues(self, issues: Counter) -> None:
        for category, count in issues.items():
            self.record_issue(category, count)

    @property
    def is_finalized(self) -> bool:
        return self.finished_at is not None

    def finalize(self, status: str) -> 'MigrationSummary':
        """
        Close the summary with a final status.

        Raises:
            RuntimeError: If the summary was already finalized
        """
        if self.is_finalized:
            raise RuntimeError(f"Summary {self.run_id} already finalized with status {self.status!r}")
        self.status = status
        self.finished_at = datetime.now(timezone.utc)
        self.duration_seconds = (self.finished_at - self.started_at).total_seconds()
        logger.info(
            f"Migration summary: {{'run_id': {self.run_id!r}, 'status': {status!r}, "
            f"'total': {self.total_items}, 'succeeded': {self.succeeded_items}, "
            f"'failed': {self.failed_items}, 'skipped': {self.skipped_items}, "
            f"'pairs': {self.pairs_reconstructed}, 'issues': {sum(self.issues.values())}}}"
        )
        return self

    def counters(self) -> Dict[str, Any]:
        """Counters that two runs over an unchanged tree must agree on."""
        return {k: v for k, v in self.to_dict().items() if k not in _VOLATILE_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'status': self.status,
            'total_items': self.total_items,
            'processed_items': self.processed_items,
            'succeeded_items': self.succeeded_items,
            'failed_items': self.failed_items,
            'skipped_items': self.skipped_items,
            'pairs_reconstructed': self.pairs_reconstructed,
            'albums_created': self.albums_created,
            'sidecars_discovered': self.sidecars_discovered,
            'sidecars_matched': self.sidecars_matched,
            'sidecars_unmatched': self.sidecars_unmatched,
            'issues': dict(sorted(self.issues.items())),
            'batches_processed': self.batches_processed,
            'current_batch_size': self.current_batch_size,
            'batches_over_time': self.batches_over_time,
            'pressure_events': self.pressure_events,
            'peak_memory_bytes': self.peak_memory_bytes,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration_seconds': self.duration_seconds,
        }

    def build_report(self) -> Dict[str, Any]:
        """
        Render the summary as a nested report.

        Includes:
        - Run metadata (id, status, timestamps)
        - Item statistics
        - Sidecar statistics
        - Issue breakdown by category
        - Batching and memory figures

        Returns:
            Dictionary ready for JSON serialization
        """
        return {
            'run_id': self.run_id,
            'status': self.status,
            'timestamps': {
                'start': self.started_at.isoformat(),
                'end': self.finished_at.isoformat() if self.finished_at else None,
                'duration_seconds': self.duration_seconds,
            },
            'items': {
                'total': self.total_items,
                'processed': self.processed_items,
                'succeeded': self.succeeded_items,
                'failed': self.failed_items,
                'skipped': self.skipped_items,
                'pairs_reconstructed': self.pairs_reconstructed,
                'albums_created': self.albums_created,
            },
            'sidecars': {
                'discovered': self.sidecars_discovered,
                'matched': self.sidecars_matched,
                'unmatched': self.sidecars_unmatched,
            },
            'issues': {
                'total': sum(self.issues.values()),
                'by_category': dict(sorted(self.issues.items())),
            },
            'batching': {
                'batches_processed': self.batches_processed,
                'current_batch_size': self.current_batch_size,
                'batches_over_time': self.batches_over_time,
            },
            'memory': {
                'pressure_events': self.pressure_events,
                'peak_memory_bytes': self.peak_memory_bytes,
            },
        }
