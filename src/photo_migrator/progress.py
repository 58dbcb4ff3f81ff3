"""Progress tracking for a migration run.

Tracks imported files against the discovered total and reports rate and ETA.
"""

import logging
import time

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Tracks migration progress and calculates ETA.

    Features:
    - Files handled count (imported, failed or skipped)
    - Processing rate (files/sec)
    - Estimated time remaining
    - Periodic logging (every N files)
    """

    def __init__(self, total_files: int, log_interval: int = 500):
        """Initialize progress tracker.

        Args:
            total_files: Total number of media files discovered
            log_interval: Log progress every N files
        """
        self.total_files = total_files
        self.log_interval = max(1, log_interval)

        self.files_processed = 0
        self.start_time = time.time()
        self.last_log_time = self.start_time
        self.last_log_count = 0
        self._next_log_at = self.log_interval

        logger.debug(f"ProgressTracker initialized (total_files={total_files})")

    def increment(self, count: int = 1) -> None:
        """Add handled files; logs when an interval boundary is crossed.

        Batches advance the counter in steps larger than one, so the check is
        a threshold rather than an exact multiple.
        """
        self.files_processed += count

        if self.files_processed >= self._next_log_at:
            self._log_progress()
            while self._next_log_at <= self.files_processed:
                self._next_log_at += self.log_interval

    def get_progress(self) -> dict:
        """Get current progress statistics.

        Returns:
            Dict with progress metrics
        """
        elapsed_time = time.time() - self.start_time

        if elapsed_time > 0:
            rate = self.files_processed / elapsed_time
        else:
            rate = 0.0

        if self.total_files > 0:
            percentage = (self.files_processed / self.total_files) * 100
        else:
            percentage = 0.0

        remaining_files = max(0, self.total_files - self.files_processed)
        if rate > 0 and remaining_files > 0:
            eta_seconds = remaining_files / rate
        else:
            eta_seconds = 0.0

        return {
            "total_files": self.total_files,
            "files_processed": self.files_processed,
            "remaining_files": remaining_files,
            "percentage": percentage,
            "elapsed_seconds": elapsed_time,
            "rate_files_per_sec": rate,
            "eta_seconds": eta_seconds,
        }

    def _log_progress(self) -> None:
        progress = self.get_progress()

        current_time = time.time()
        time_delta = current_time - self.last_log_time
        count_delta = self.files_processed - self.last_log_count

        if time_delta > 0:
            instant_rate = count_delta / time_delta
        else:
            instant_rate = 0.0

        logger.info(
            f"Progress: {self.files_processed}/{self.total_files} "
            f"({progress['percentage']:.1f}%) - "
            f"{progress['rate_files_per_sec']:.1f} files/sec (avg), "
            f"{instant_rate:.1f} files/sec (current) - "
            f"ETA: {format_duration(progress['eta_seconds'])}"
        )

        self.last_log_time = current_time
        self.last_log_count = self.files_processed

    def log_final_summary(self) -> None:
        elapsed_time = time.time() - self.start_time
        rate = self.files_processed / elapsed_time if elapsed_time > 0 else 0.0

        logger.info(
            f"Migration finished: {self.files_processed}/{self.total_files} files handled "
            f"in {format_duration(elapsed_time)} "
            f"({rate:.1f} files/sec average)"
        )


def format_duration(seconds: float) -> str:
    """Format seconds as human-readable time (e.g. "2h 15m 30s")."""
    if seconds <= 0:
        return "0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)
