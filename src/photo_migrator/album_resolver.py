"""Album labels derived from directory structure.

Takeout archives wrap the library in export scaffolding
(``Takeout/Google Photos/...``). Everything below that scaffolding is the
user's own folder structure and becomes the album label.
"""

import logging
import re
from typing import Iterable, List, Optional

from photo_migrator.common import normalize_path

logger = logging.getLogger(__name__)

YEAR_FOLDER_RE = re.compile(r'^Photos from (\d{4})$', re.IGNORECASE)

DEFAULT_NOISE_DIRECTORIES = ('Takeout', 'Google Photos')


def album_year(relative_dir: str) -> Optional[int]:
    """
    Extract the year from an exporter date bucket.

    Args:
        relative_dir: Directory path or folder name (e.g. "Photos from 2023")

    Returns:
        Year as integer, or None if the final segment is not a year folder
    """
    segments = _segments(relative_dir)
    if not segments:
        return None
    match = YEAR_FOLDER_RE.match(segments[-1])
    if match:
        return int(match.group(1))
    return None


def _segments(relative_dir: str) -> List[str]:
    return [s for s in normalize_path(relative_dir).split('/') if s and s != '.']


class AlbumPathResolver:
    """Maps a directory (relative to the archive root) to an album label."""

    def __init__(
        self,
        noise_directories: Iterable[str] = DEFAULT_NOISE_DIRECTORIES,
        separator: str = " - ",
        skip_year_folders: bool = False,
    ):
        self.noise_directories = frozenset(name.casefold() for name in noise_directories)
        self.separator = separator
        self.skip_year_folders = skip_year_folders

    def resolve(self, relative_dir: str) -> str:
        """
        Resolve the album label for a directory.

        Args:
            relative_dir: Directory relative to the archive root ('' for the root)

        Returns:
            Album label, or '' when the directory is not an album
        """
        segments = _segments(relative_dir)
        while segments and segments[0].casefold() in self.noise_directories:
            segments.pop(0)
        if not segments:
            return ""
        if self.skip_year_folders and YEAR_FOLDER_RE.match(segments[-1]):
            logger.debug(f"Skipping year folder: {{'directory': {relative_dir!r}}}")
            return ""
        return self.separator.join(segments)
