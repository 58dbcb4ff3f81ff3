"""Cooperative cancellation flag shared by the pipeline stages."""

import threading


class CancellationToken:
    """A flag that external layers set and pipeline stages poll.

    Stages check ``is_cancelled`` at enumeration steps, per-asset boundaries
    and batch boundaries. ``wait`` doubles as an interruptible sleep for the
    inter-batch pause.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)
