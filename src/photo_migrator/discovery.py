"""Source tree enumeration.

Walks the extracted takeout tree in a deterministic order (directories and
files sorted by name) and yields one ``DirectoryListing`` per directory that
contains at least one media file. The order of listings is the discovery
order that batches follow downstream.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from photo_migrator.common import relative_to_root
from .cancellation import CancellationToken
from .classifier import PathClassifier
from .errors import EnumerationError
from .models import DirectoryListing, EntryKind, RawEntry

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of enumerating the source tree.

    Attributes:
        listings: Directories with media, in discovery order
        media_count: Media files discovered
        sidecar_count: JSON sidecars discovered
        ignored_count: Entries classified as ignorable
        unreadable_directories: Sub-directories that could not be listed
        cancelled: True if enumeration stopped on cancellation
    """
    listings: List[DirectoryListing] = field(default_factory=list)
    media_count: int = 0
    sidecar_count: int = 0
    ignored_count: int = 0
    unreadable_directories: List[str] = field(default_factory=list)
    cancelled: bool = False


def _check_root(root: Path) -> None:
    if not root.exists():
        raise EnumerationError(f"Source directory does not exist: {root}", path=str(root))
    if not root.is_dir():
        raise EnumerationError(f"Source path is not a directory: {root}", path=str(root))
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise EnumerationError(f"Cannot read source directory: {root}: {e}", path=str(root)) from e


def scan_tree(
    root: Path,
    classifier: Optional[PathClassifier] = None,
    skip_hidden: bool = True,
    cancel_token: Optional[CancellationToken] = None,
) -> ScanResult:
    """
    Enumerate ``root`` and classify every file.

    Args:
        root: Root of the extracted archive
        classifier: Classifier to use (default: ``PathClassifier()``)
        skip_hidden: Skip names starting with '.'
        cancel_token: Checked once per directory

    Returns:
        ScanResult with listings in discovery order

    Raises:
        EnumerationError: If the root itself cannot be read
    """
    root = Path(root)
    _check_root(root)
    classifier = classifier or PathClassifier()
    result = ScanResult()

    def on_error(error: OSError) -> None:
        failed = Path(error.filename) if error.filename else root
        if failed == root:
            # Root became unreadable after the initial check
            raise EnumerationError(f"Cannot read source directory: {root}: {error}", path=str(root)) from error
        logger.warning(f"Cannot read directory: {{'path': {str(failed)!r}, 'error': {str(error)!r}}}")
        result.unreadable_directories.append(relative_to_root(failed, root))

    logger.info(f"Scanning source tree: {{'path': {str(root)!r}}}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        if cancel_token is not None and cancel_token.is_cancelled:
            logger.info("Scan cancelled")
            result.cancelled = True
            break

        if skip_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith('.')]
        dirnames.sort()

        directory = Path(dirpath)
        entries = []
        for name in sorted(filenames):
            if skip_hidden and name.startswith('.'):
                continue
            classification = classifier.classify(name)
            if classification.kind is EntryKind.MEDIA:
                result.media_count += 1
            elif classification.kind is EntryKind.SIDECAR:
                result.sidecar_count += 1
            else:
                result.ignored_count += 1
                continue
            entries.append(RawEntry(path=directory / name, classification=classification))

        if not any(e.classification.kind is EntryKind.MEDIA for e in entries):
            continue

        result.listings.append(DirectoryListing(
            index=len(result.listings),
            directory=directory,
            relative_path=relative_to_root(directory, root),
            entries=tuple(entries),
        ))

    logger.info(
        f"Scan complete: {{'directories': {len(result.listings)}, 'media': {result.media_count}, "
        f"'sidecars': {result.sidecar_count}, 'ignored': {result.ignored_count}, "
        f"'unreadable_directories': {len(result.unreadable_directories)}}}"
    )
    return result
