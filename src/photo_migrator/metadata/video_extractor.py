"""Video metadata extraction using ffprobe."""

import json
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

FFPROBE_TIMEOUT_SECONDS = 30


def extract_video_metadata(file_path: Path) -> Dict[str, Any]:
    """
    Extract video metadata using ffprobe.

    Extracts:
    - creation_time: datetime (container or first video stream tag)
    - width: int
    - height: int
    - duration_seconds: float

    Args:
        file_path: Path to video file

    Returns:
        Dictionary with video metadata

    Raises:
        FileNotFoundError: If ffprobe is not available
        subprocess.CalledProcessError: If ffprobe fails
        subprocess.TimeoutExpired: If ffprobe hangs
        json.JSONDecodeError: If ffprobe output is not JSON
    """
    result = subprocess.run(
        [
            'ffprobe',
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            str(file_path)
        ],
        capture_output=True,
        text=True,
        encoding='utf-8',
        check=True,
        timeout=FFPROBE_TIMEOUT_SECONDS,
    )
    return parse_ffprobe_output(json.loads(result.stdout))


def parse_ffprobe_output(data: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the fields the reconciler uses out of ffprobe's JSON output."""
    metadata: Dict[str, Any] = {}

    fmt = data.get('format') or {}
    if 'duration' in fmt:
        try:
            metadata['duration_seconds'] = float(fmt['duration'])
        except (TypeError, ValueError):
            pass

    creation = _parse_creation_time((fmt.get('tags') or {}).get('creation_time'))

    for stream in data.get('streams') or []:
        if stream.get('codec_type') != 'video':
            continue
        if 'width' in stream and 'height' in stream:
            metadata['width'] = int(stream['width'])
            metadata['height'] = int(stream['height'])
        if creation is None:
            creation = _parse_creation_time((stream.get('tags') or {}).get('creation_time'))
        # Only the first video stream
        break

    if creation is not None:
        metadata['creation_time'] = creation

    return metadata


def _parse_creation_time(value: Any) -> Optional[datetime]:
    """Parse ffprobe's ISO 8601 creation_time tag ("2020-01-01T12:00:00.000000Z")."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        logger.debug(f"Could not parse video creation_time: {{'value': {value!r}}}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # Cameras without a clock write the container epoch
    if dt.year <= 1970:
        return None
    return dt.astimezone(timezone.utc)
