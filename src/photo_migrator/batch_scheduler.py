"""Memory-aware batch scheduling.

Items are pulled lazily from an iterator and grouped into batches whose size
follows memory pressure: batches grow while pressure is normal and shrink as
it rises, never below a floor. Between batches the scheduler pauses so the
runtime can reclaim memory.
"""

import gc
import logging
import time
from dataclasses import dataclass
from itertools import islice
from typing import Callable, Iterable, List, Optional

from .cancellation import CancellationToken
from .config import BatchConfig
from .memory_monitor import MemoryPressureMonitor
from .models import Batch, BatchItem, MemoryPressureLevel

logger = logging.getLogger(__name__)

GIB = 1024 ** 3

# (minimum total memory, starting batch size), largest first
MEMORY_TIERS = (
    (32 * GIB, 500),
    (16 * GIB, 300),
    (8 * GIB, 150),
)
SMALL_MACHINE_BATCH_SIZE = 75

MEDIUM_SHRINK = 0.75
HIGH_SHRINK = 0.5


def recommended_batch_size(total_memory_bytes: int) -> int:
    for minimum, size in MEMORY_TIERS:
        if total_memory_bytes >= minimum:
            return size
    return SMALL_MACHINE_BATCH_SIZE


def recommended_settings(total_memory_bytes: int, base: Optional[BatchConfig] = None) -> BatchConfig:
    """
    Batch settings with a starting size suited to the machine.

    Args:
        total_memory_bytes: Physical memory (or budget) in bytes
        base: Settings to start from (defaults to ``BatchConfig()``)

    Returns:
        Copy of ``base`` whose ``initial_size`` follows the memory tier,
        kept within ``[min_size, max_size]``
    """
    base = base or BatchConfig()
    size = recommended_batch_size(total_memory_bytes)
    size = max(base.min_size, min(base.max_size, size))
    return base.model_copy(update={'initial_size': size})


class BatchSizePolicy:
    """Maps the current size and pressure level to the next batch size."""

    def __init__(self, min_size: int, max_size: int, adaptive: bool = True, growth_factor: float = 0.2):
        self.min_size = min_size
        self.max_size = max_size
        self.adaptive = adaptive
        self.growth_factor = growth_factor

    @classmethod
    def from_config(cls, settings: BatchConfig) -> 'BatchSizePolicy':
        return cls(
            min_size=settings.min_size,
            max_size=settings.max_size,
            adaptive=settings.adaptive,
            growth_factor=settings.growth_factor,
        )

    def clamp(self, size: int) -> int:
        return max(self.min_size, min(self.max_size, size))

    def recommend(self, current: int, level: MemoryPressureLevel) -> int:
        """
        Next batch size.

        Growth at normal pressure is damped as the size approaches the
        maximum; elevated pressure shrinks proportionally to severity.
        """
        if level is MemoryPressureLevel.NORMAL:
            if not self.adaptive or self.growth_factor <= 0:
                return self.clamp(current)
            damping = max(0.5, 1.0 - current / self.max_size)
            growth = max(1, int(current * self.growth_factor * damping))
            return self.clamp(current + growth)
        if level is MemoryPressureLevel.MEDIUM:
            return self.clamp(int(current * MEDIUM_SHRINK))
        if level is MemoryPressureLevel.HIGH:
            return self.clamp(int(current * HIGH_SHRINK))
        return self.min_size


@dataclass
class ScheduleReport:
    """What a scheduling run did.

    Attributes:
        batches: Batches handed to the consumer
        items: Items handed to the consumer
        last_batch_size: Target size of the most recent batch
        batches_over_time: Batches slower than the time hint
        size_changes: Boundaries where the target size changed
        cancelled: True if the run stopped at a boundary on cancellation
    """
    batches: int = 0
    items: int = 0
    last_batch_size: int = 0
    batches_over_time: int = 0
    size_changes: int = 0
    cancelled: bool = False


_END = object()


class BatchScheduler:
    """Cuts an item stream into pressure-sized batches."""

    def __init__(
        self,
        monitor: MemoryPressureMonitor,
        settings: BatchConfig,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.monitor = monitor
        self.settings = settings
        self.cancel_token = cancel_token or CancellationToken()
        self.policy = BatchSizePolicy.from_config(settings)

    def run(
        self,
        items: Iterable[BatchItem],
        consume: Callable[[Batch], None],
        on_boundary: Optional[Callable[[], None]] = None,
    ) -> ScheduleReport:
        """
        Feed ``items`` to ``consume`` in batches.

        Args:
            items: BatchItems in emission order, pulled lazily
            consume: Called once per batch; the batch always completes
            on_boundary: Called after each boundary sample

        Returns:
            ScheduleReport. Cancellation is reported, never raised.
        """
        report = ScheduleReport()
        iterator = iter(items)
        size: Optional[int] = None
        slow_previous = False

        pending = next(iterator, _END)
        while pending is not _END:
            if self.cancel_token.is_cancelled:
                report.cancelled = True
                logger.info(f"Scheduling cancelled at batch boundary: {{'batches': {report.batches}}}")
                break

            self.monitor.sample()
            level = self.monitor.effective_level
            if on_boundary is not None:
                on_boundary()

            new_size = self._next_size(size, level, slow_previous)
            if size is not None and new_size != size:
                report.size_changes += 1
                logger.debug(f"Batch size changed: {{'from': {size}, 'to': {new_size}, 'pressure': {level.label!r}}}")
            size = new_size

            batch_items: List[BatchItem] = [pending]
            batch_items.extend(islice(iterator, size - 1))
            batch = Batch(index=report.batches, items=tuple(batch_items), pressure=level)

            started = time.monotonic()
            consume(batch)
            elapsed = time.monotonic() - started

            report.batches += 1
            report.items += len(batch)
            report.last_batch_size = size

            slow_previous = self._is_slow(elapsed)
            if slow_previous:
                report.batches_over_time += 1
                logger.warning(
                    f"Batch exceeded time limit: {{'batch': {batch.index}, 'elapsed_seconds': {elapsed:.1f}, "
                    f"'limit_seconds': {self.settings.max_batch_seconds}}}"
                )

            logger.info(
                f"Batch complete: {{'batch': {batch.index}, 'items': {len(batch)}, 'target_size': {size}, "
                f"'pressure': {level.label!r}, 'elapsed_seconds': {elapsed:.2f}}}"
            )

            pending = next(iterator, _END)
            if pending is _END:
                break
            if self._pause():
                report.cancelled = True
                logger.info(f"Scheduling cancelled during pause: {{'batches': {report.batches}}}")
                break

        return report

    def _next_size(self, current: Optional[int], level: MemoryPressureLevel, slow_previous: bool) -> int:
        if current is None:
            # No growth before the first batch has run
            if level is MemoryPressureLevel.NORMAL:
                return self.policy.clamp(self.settings.initial_size)
            return self.policy.recommend(self.settings.initial_size, level)
        recommended = self.policy.recommend(current, level)
        if slow_previous:
            return max(self.policy.min_size, min(recommended, current // 2))
        return recommended

    def _is_slow(self, elapsed: float) -> bool:
        limit = self.settings.max_batch_seconds
        return limit is not None and elapsed > limit

    def _pause(self) -> bool:
        """Pause between batches; return True if cancelled meanwhile."""
        level = self.monitor.effective_level
        if level >= MemoryPressureLevel.HIGH:
            collected = gc.collect()
            logger.debug(f"Garbage collected between batches: {{'objects': {collected}, 'pressure': {level.label!r}}}")
        if self.settings.pause_seconds <= 0:
            return self.cancel_token.is_cancelled
        if level is MemoryPressureLevel.NORMAL and self.settings.skip_pause_when_normal:
            return self.cancel_token.is_cancelled
        return self.cancel_token.wait(self.settings.pause_seconds)
