"""Resume checkpoint: ids of assets already handed to the store."""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Set, TextIO

logger = logging.getLogger(__name__)


class Checkpoint:
    """Append-only record of completed asset ids, one per line.

    Ids are appended and flushed after every consumed batch, so an
    interrupted run loses at most the batch in flight.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._completed: Set[str] = set()
        self._handle: Optional[TextIO] = None

        if self.path.exists():
            with open(self.path, 'r', encoding='utf-8') as f:
                for line in f:
                    asset_id = line.strip()
                    if asset_id:
                        self._completed.add(asset_id)
            logger.info(f"Loaded checkpoint: {{'path': {str(self.path)!r}, 'completed': {len(self._completed)}}}")

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._completed

    def __len__(self) -> int:
        return len(self._completed)

    def record(self, asset_ids: Iterable[str]) -> None:
        new_ids = [a for a in asset_ids if a not in self._completed]
        if not new_ids:
            return
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.path, 'a', encoding='utf-8')
        self._handle.write(''.join(f"{asset_id}\n" for asset_id in new_ids))
        self._handle.flush()
        os.fsync(self._handle.fileno())
        self._completed.update(new_ids)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> 'Checkpoint':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
