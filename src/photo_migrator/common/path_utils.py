"""Path utilities for consistent path handling across packages."""

import unicodedata
from pathlib import Path


def normalize_path(path: Path | str) -> str:
    """
    Normalize a path for stable identity and comparison.

    Applies Unicode NFC normalization and converts backslashes to forward
    slashes, so the same file yields the same string on every platform.

    Args:
        path: Path object or string to normalize

    Returns:
        Normalized path string

    Examples:
        >>> normalize_path(Path("café/résumé.jpg"))
        'café/résumé.jpg'
        >>> normalize_path(r"Takeout\\Google Photos\\Trip")
        'Takeout/Google Photos/Trip'
    """
    normalized = unicodedata.normalize('NFC', str(path))
    return normalized.replace('\\', '/')


def relative_to_root(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` as a normalized string.

    The root itself maps to an empty string.
    """
    relative = path.relative_to(root)
    if str(relative) == '.':
        return ''
    return normalize_path(relative)
