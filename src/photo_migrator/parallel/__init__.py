"""Parallel directory resolution.

This package contains the parallel processing infrastructure:
- Worker threads: resolve directories pulled from the work queue
- Directory queues: bounded work and results queues, in-flight accounting
"""

from .queue_manager import DirectoryQueues
from .worker_thread import process_listing, worker_thread_main

__all__ = [
    "DirectoryQueues",
    "process_listing",
    "worker_thread_main",
]
