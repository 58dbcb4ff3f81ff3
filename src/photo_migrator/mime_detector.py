"""MIME type detection from magic bytes using the filetype library."""

import logging
from pathlib import Path

import filetype

logger = logging.getLogger(__name__)

UNKNOWN_MIME_TYPE = 'application/octet-stream'


def detect_mime_type(file_path: Path) -> str:
    """
    Detect the MIME type of a file from its signature.

    Args:
        file_path: Path to the file

    Returns:
        MIME type string (e.g. 'image/jpeg', 'video/mp4'), or
        'application/octet-stream' when the type cannot be determined
        or the file cannot be read
    """
    try:
        kind = filetype.guess(str(file_path))
    except OSError as e:
        logger.debug(f"Cannot read file signature: {{'path': {str(file_path)!r}, 'error': {str(e)!r}}}")
        return UNKNOWN_MIME_TYPE
    if kind is not None:
        return kind.mime
    return UNKNOWN_MIME_TYPE


def is_video_mime_type(mime_type: str) -> bool:
    return mime_type.startswith('video/')


def is_unknown_mime_type(mime_type: str) -> bool:
    return mime_type == UNKNOWN_MIME_TYPE


def is_plausible_motion_component(file_path: Path) -> bool:
    """True unless the file's signature positively identifies a non-video."""
    mime_type = detect_mime_type(file_path)
    return is_video_mime_type(mime_type) or is_unknown_mime_type(mime_type)
