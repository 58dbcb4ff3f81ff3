"""Memory pressure monitoring.

Samples process memory against a total (physical memory, or a configured
budget) and classifies the ratio into four pressure levels. Level changes are
published to subscribers; the batch scheduler reads the level at each batch
boundary.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

import psutil

from .config import MemoryConfig
from .errors import PressureSamplingError
from .models import MemoryPressureLevel

logger = logging.getLogger(__name__)


class MemorySource(Protocol):
    """Provider of memory figures, both in bytes."""

    def current_usage(self) -> int:
        ...

    def total_memory(self) -> int:
        ...


class PsutilMemorySource:
    """Resident set size of this process against physical memory.

    Args:
        budget_mb: Optional cap on the total; pressure is computed against
            the smaller of physical memory and the budget
    """

    def __init__(self, budget_mb: Optional[int] = None):
        self.budget_bytes = budget_mb * 1024 * 1024 if budget_mb else None
        self._process = psutil.Process()

    def current_usage(self) -> int:
        try:
            return self._process.memory_info().rss
        except psutil.Error as e:
            raise PressureSamplingError(f"Cannot read process memory: {e}", pid=self._process.pid) from e

    def total_memory(self) -> int:
        total = psutil.virtual_memory().total
        if self.budget_bytes is not None:
            return min(total, self.budget_bytes)
        return total


@dataclass(frozen=True)
class PressureThresholds:
    """Usage ratios at which each pressure level begins."""
    medium: float = 0.7
    high: float = 0.8
    critical: float = 0.9

    def __post_init__(self):
        if not 0.0 < self.medium < self.high < self.critical <= 1.0:
            raise ValueError(
                f"Thresholds must be ascending within (0, 1]: "
                f"medium={self.medium}, high={self.high}, critical={self.critical}"
            )

    @classmethod
    def from_config(cls, config: MemoryConfig) -> 'PressureThresholds':
        return cls(
            medium=config.medium_threshold,
            high=config.high_threshold,
            critical=config.critical_threshold,
        )

    def level_for(self, ratio: float) -> MemoryPressureLevel:
        if ratio >= self.critical:
            return MemoryPressureLevel.CRITICAL
        if ratio >= self.high:
            return MemoryPressureLevel.HIGH
        if ratio >= self.medium:
            return MemoryPressureLevel.MEDIUM
        return MemoryPressureLevel.NORMAL


@dataclass(frozen=True)
class MemorySample:
    used_bytes: int
    total_bytes: int
    usage_ratio: float
    level: MemoryPressureLevel
    timestamp: float


@dataclass(frozen=True)
class PressureChangeEvent:
    previous: MemoryPressureLevel
    current: MemoryPressureLevel
    usage_ratio: float
    timestamp: float


PressureCallback = Callable[[PressureChangeEvent], None]


class MemoryPressureMonitor:
    """Tracks memory pressure from explicit and periodic samples.

    All state is guarded by a single lock. Subscribers are notified outside
    the lock, once per level transition, in subscription order.

    Usage:
        with MemoryPressureMonitor(PsutilMemorySource()) as monitor:
            monitor.subscribe(on_change)
            level = monitor.effective_level
    """

    def __init__(
        self,
        source: MemorySource,
        thresholds: Optional[PressureThresholds] = None,
        sample_interval: float = 1.0,
    ):
        self.source = source
        self.thresholds = thresholds or PressureThresholds()
        self.sample_interval = sample_interval

        self._lock = threading.Lock()
        self._level = MemoryPressureLevel.NORMAL
        self._usage_ratio = 0.0
        self._peak_usage_bytes = 0
        self._last_sample_failed = False
        self._sampling_failures = 0
        self._subscribers: List[PressureCallback] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, callback: PressureCallback) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def sample(self) -> Optional[MemorySample]:
        """
        Take one sample now.

        Returns:
            The new sample, or None if the source failed. Failures are
            counted and logged; they never raise.
        """
        try:
            used = int(self.source.current_usage())
            total = int(self.source.total_memory())
            if total <= 0:
                raise PressureSamplingError(f"total memory is {total}", total=total)
        except Exception as e:
            with self._lock:
                self._sampling_failures += 1
                self._last_sample_failed = True
                failures = self._sampling_failures
            logger.warning(f"Memory sampling failed: {{'error': {str(e)!r}, 'failures': {failures}}}")
            return None

        ratio = used / total
        level = self.thresholds.level_for(ratio)
        now = time.time()
        event = None

        with self._lock:
            self._last_sample_failed = False
            self._usage_ratio = ratio
            self._peak_usage_bytes = max(self._peak_usage_bytes, used)
            if level is not self._level:
                event = PressureChangeEvent(
                    previous=self._level,
                    current=level,
                    usage_ratio=ratio,
                    timestamp=now,
                )
                self._level = level
            subscribers = list(self._subscribers)

        if event is not None:
            logger.info(
                f"Memory pressure changed: {{'previous': {event.previous.label!r}, "
                f"'current': {event.current.label!r}, 'usage_ratio': {ratio:.3f}}}"
            )
            for callback in subscribers:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(f"Pressure subscriber failed: {e}", exc_info=True)

        return MemorySample(used_bytes=used, total_bytes=total, usage_ratio=ratio, level=level, timestamp=now)

    @property
    def current_level(self) -> MemoryPressureLevel:
        with self._lock:
            return self._level

    @property
    def effective_level(self) -> MemoryPressureLevel:
        """Level to act on: critical while the most recent sample failed."""
        with self._lock:
            if self._last_sample_failed:
                return MemoryPressureLevel.CRITICAL
            return self._level

    @property
    def usage_ratio(self) -> float:
        with self._lock:
            return self._usage_ratio

    @property
    def peak_usage_bytes(self) -> int:
        with self._lock:
            return self._peak_usage_bytes

    @property
    def sampling_failures(self) -> int:
        with self._lock:
            return self._sampling_failures

    def reset_peak(self) -> None:
        with self._lock:
            self._peak_usage_bytes = 0

    def start(self) -> None:
        """Start periodic sampling in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self.sample()
        self._thread = threading.Thread(target=self._run, name="memory-monitor", daemon=True)
        self._thread.start()
        logger.debug(f"Memory monitor started: {{'interval_seconds': {self.sample_interval}}}")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
            logger.debug("Memory monitor stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.sample_interval):
            self.sample()

    def __enter__(self) -> 'MemoryPressureMonitor':
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
