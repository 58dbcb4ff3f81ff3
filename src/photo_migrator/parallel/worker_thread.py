"""Worker thread for parallel directory resolution.

Worker threads:
1. Pull a DirectoryListing from the work queue
2. Resolve it (sidecar matching, metadata, pairing, album)
3. Put the result in the results queue

Results carry the directory's discovery index; the orchestrator re-sequences
them so that emission order equals discovery order.
"""

import logging
import threading
from queue import Empty, Queue
from typing import Any, Dict, Optional

from ..cancellation import CancellationToken
from ..coordinator import ResolveContext, resolve_directory
from ..errors import classify_error
from ..models import DirectoryListing

logger = logging.getLogger(__name__)


def process_listing(
    listing: DirectoryListing,
    context: ResolveContext,
    cancel_token: Optional[CancellationToken] = None,
) -> Dict[str, Any]:
    """Resolve one directory into a result dict.

    Returns:
        ``{"type": "directory", "index", "result"}`` on success, or
        ``{"type": "error", "index", "relative_path", "media_count",
        "error_category", "error_message"}`` if resolution failed as a whole
    """
    try:
        return {
            "type": "directory",
            "index": listing.index,
            "result": resolve_directory(listing, context, cancel_token),
        }
    except Exception as e:
        logger.error(f"Failed to resolve directory {listing.relative_path!r}: {e}", exc_info=True)
        return {
            "type": "error",
            "index": listing.index,
            "relative_path": listing.relative_path,
            "media_count": len(listing.media_entries()),
            "error_category": classify_error(e),
            "error_message": str(e),
        }


def worker_thread_main(
    thread_id: int,
    work_queue: Queue,
    results_queue: Queue,
    context: ResolveContext,
    cancel_token: CancellationToken,
    shutdown_event: threading.Event,
) -> None:
    """Main function for a worker thread.

    Args:
        thread_id: Unique identifier for this worker thread
        work_queue: Queue of DirectoryListing objects (None = shutdown sentinel)
        results_queue: Queue for result dicts
        context: Shared resolution collaborators
        cancel_token: Run cancellation, checked per asset
        shutdown_event: Event to signal shutdown
    """
    logger.debug(f"Worker thread {thread_id} started")

    processed_count = 0
    error_count = 0

    while not shutdown_event.is_set():
        try:
            listing = work_queue.get(timeout=0.1)
        except Empty:
            continue

        if listing is None:
            logger.debug(f"Worker thread {thread_id} received shutdown sentinel")
            work_queue.task_done()
            break

        try:
            result = process_listing(listing, context, cancel_token)
            if result["type"] == "error":
                error_count += 1
            else:
                processed_count += 1
            results_queue.put(result)
        finally:
            work_queue.task_done()

    logger.debug(
        f"Worker thread {thread_id} shutting down "
        f"(processed={processed_count}, errors={error_count})"
    )
