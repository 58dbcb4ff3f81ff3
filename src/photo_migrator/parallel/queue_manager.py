"""Queues between the orchestrator and the resolver threads.

Directories go out on the work queue and come back, in completion order, on
the results queue. A directory stays in flight from submission until the
orchestrator releases it after emitting its result in discovery order, so
``max_in_flight`` bounds both queues and the reorder buffer.
"""

import logging
from queue import Empty, Full, Queue
from typing import Any, Dict, Optional

from ..models import DirectoryListing

logger = logging.getLogger(__name__)


class DirectoryQueues:
    """Bounded work and results queues with in-flight accounting.

    Only the orchestrator thread submits, releases and reads results; worker
    threads see the two queues and nothing else.
    """

    def __init__(self, max_in_flight: int = 32):
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1, got {max_in_flight}")
        self.max_in_flight = max_in_flight
        self.work_queue: Queue = Queue(maxsize=max_in_flight)
        self.results_queue: Queue = Queue(maxsize=max_in_flight)
        self.in_flight = 0
        self.submitted = 0

    def try_submit(self, listing: DirectoryListing) -> bool:
        """Queue ``listing`` unless the in-flight limit is reached."""
        if self.in_flight >= self.max_in_flight:
            return False
        self.work_queue.put_nowait(listing)
        self.in_flight += 1
        self.submitted += 1
        return True

    def release(self) -> None:
        """Free the slot of a directory whose result has been emitted."""
        if self.in_flight == 0:
            raise RuntimeError("release() without a directory in flight")
        self.in_flight -= 1

    def next_result(self, timeout: float) -> Optional[Dict[str, Any]]:
        """Next finished directory in completion order, or None on timeout."""
        try:
            return self.results_queue.get(timeout=timeout)
        except Empty:
            return None

    def stats(self) -> Dict[str, int]:
        return {
            "in_flight": self.in_flight,
            "submitted": self.submitted,
            "work_queue_depth": self.work_queue.qsize(),
            "results_queue_depth": self.results_queue.qsize(),
            "max_in_flight": self.max_in_flight,
        }

    def stop_workers(self, worker_count: int) -> int:
        """Post one stop sentinel per worker, as far as the work queue has room.

        Workers that miss a sentinel still stop on the shutdown event.

        Returns:
            Number of sentinels posted
        """
        posted = 0
        for _ in range(worker_count):
            try:
                self.work_queue.put_nowait(None)
            except Full:
                break
            posted += 1
        logger.debug(f"Stopping resolver threads: {{'sentinels': {posted}, 'queues': {self.stats()}}}")
        return posted
