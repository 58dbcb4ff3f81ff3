"""Parser for Google Takeout JSON sidecar files."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..errors import SidecarParseError

logger = logging.getLogger(__name__)

# Sidecar keys for the three levels of the timestamp chain
TAKEN_TIME_KEY = 'photoTakenTime'
CREATION_TIME_KEY = 'creationTime'
MODIFICATION_TIME_KEYS = ('modificationTime', 'photoLastModifiedTime')

FAVORITE_KEYS = ('favorited', 'favorite')

FORMATTED_TIMESTAMP_FORMATS = [
    "%b %d, %Y, %I:%M:%S %p UTC",  # Jan 1, 2020, 12:00:00 AM UTC
    "%b %d, %Y, %I:%M:%S %p",      # Jan 1, 2020, 12:00:00 AM
    "%Y-%m-%d %H:%M:%S UTC",       # 2020-01-01 00:00:00 UTC
    "%Y-%m-%d %H:%M:%S",           # 2020-01-01 00:00:00
]


def load_sidecar_document(json_path: Path) -> Dict[str, Any]:
    """
    Read a sidecar file and return its top-level JSON object.

    Args:
        json_path: Path to JSON sidecar file

    Returns:
        The decoded JSON object

    Raises:
        SidecarParseError: If the file is unreadable, is not valid JSON,
            or its root is not an object
    """
    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SidecarParseError(
            f"Failed to read sidecar {json_path}: {e}", path=str(json_path)
        ) from e

    if not isinstance(data, dict):
        raise SidecarParseError(
            f"Sidecar root is not an object: {json_path}",
            path=str(json_path),
            root_type=type(data).__name__,
        )
    return data


def parse_json_sidecar(json_path: Path) -> Dict[str, Any]:
    """
    Parse a Google Takeout JSON sidecar file.

    Args:
        json_path: Path to JSON sidecar file

    Returns:
        Dictionary with the recognised fields (see ``parse_sidecar_data``)
        plus ``document`` holding the raw decoded object

    Raises:
        SidecarParseError: If the sidecar is unreadable or malformed
    """
    data = load_sidecar_document(json_path)
    metadata = parse_sidecar_data(data)
    metadata['document'] = data
    return metadata


def parse_sidecar_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Extract the fields the reconciler consumes from a decoded sidecar.

    Unknown keys are ignored. Keys are only present in the result when the
    sidecar supplied a usable value:

        - title, description: str (blank strings dropped)
        - photoTakenTime, creationTime, modificationTime: datetime (UTC)
        - geoData, geoDataExif: dict with latitude, longitude, altitude
        - people: list of names, de-duplicated, order kept
        - favorited: bool
        - keywords: list of str

    Args:
        data: Decoded sidecar object

    Returns:
        Dictionary of parsed fields
    """
    metadata: Dict[str, Any] = {}

    for key in ('title', 'description'):
        text = _parse_text(data.get(key))
        if text is not None:
            metadata[key] = text

    taken = _parse_timestamp(data.get(TAKEN_TIME_KEY))
    if taken is not None:
        metadata['photoTakenTime'] = taken

    created = _parse_timestamp(data.get(CREATION_TIME_KEY))
    if created is not None:
        metadata['creationTime'] = created

    for key in MODIFICATION_TIME_KEYS:
        modified = _parse_timestamp(data.get(key))
        if modified is not None:
            metadata['modificationTime'] = modified
            break

    for key in ('geoData', 'geoDataExif'):
        geo = _parse_geo_data(data.get(key))
        if geo:
            metadata[key] = geo

    if 'people' in data:
        people = _parse_people(data['people'])
        if people:
            metadata['people'] = people

    for key in FAVORITE_KEYS:
        if isinstance(data.get(key), bool):
            metadata['favorited'] = data[key]
            break

    keywords = data.get('keywords')
    if isinstance(keywords, list):
        parsed = [k.strip() for k in keywords if isinstance(k, str) and k.strip()]
        if parsed:
            metadata['keywords'] = list(dict.fromkeys(parsed))

    return metadata


def _parse_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _parse_timestamp(timestamp_data: Any) -> Optional[datetime]:
    """
    Parse a ``{"timestamp": "<epoch seconds>", "formatted": ...}`` object.

    The epoch value wins; ``formatted`` is only consulted when it is missing
    or unusable.

    Args:
        timestamp_data: Timestamp object from the sidecar

    Returns:
        Timezone-aware UTC datetime or None
    """
    if not isinstance(timestamp_data, dict):
        return None

    raw = timestamp_data.get('timestamp')
    if raw is not None and not isinstance(raw, bool):
        try:
            return datetime.fromtimestamp(float(str(raw).strip()), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.warning(f"Invalid epoch timestamp in sidecar: {{'value': {raw!r}}}")

    formatted = timestamp_data.get('formatted')
    if isinstance(formatted, str):
        return _parse_formatted_timestamp(formatted)

    return None


def _parse_formatted_timestamp(formatted: str) -> Optional[datetime]:
    """
    Parse a formatted timestamp string.

    Google uses formats like "Jan 1, 2020, 12:00:00 AM UTC"; ISO 8601
    strings are accepted as well. Naive values are taken as UTC.

    Args:
        formatted: Formatted timestamp string

    Returns:
        Timezone-aware datetime or None
    """
    # Narrow no-break spaces appear in newer exports ("12:00:00 AM")
    formatted = formatted.replace("\u202f", " ").strip()

    try:
        dt = datetime.fromisoformat(formatted.replace('Z', '+00:00'))
    except ValueError:
        dt = None

    if dt is None:
        for fmt in FORMATTED_TIMESTAMP_FORMATS:
            try:
                dt = datetime.strptime(formatted, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        logger.warning(f"Could not parse timestamp format: {{'value': {formatted!r}}}")
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_geo_data(geo_data: Any) -> Dict[str, float]:
    """
    Parse a geoData object.

    Values are converted with ``float()`` only, so coordinates keep the
    exact value the JSON decoder produced.

    Args:
        geo_data: Dictionary with latitude, longitude, altitude, etc.

    Returns:
        Dictionary with the numeric fields present, or an empty dict
    """
    result: Dict[str, float] = {}
    if not isinstance(geo_data, dict):
        return result

    for key in ('latitude', 'longitude', 'altitude'):
        value = geo_data.get(key)
        if isinstance(value, bool) or value is None:
            continue
        try:
            result[key] = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric geo value: {{'key': {key!r}, 'value': {value!r}}}")

    return result


def _parse_people(people: Any) -> List[str]:
    """
    Parse the people array into an ordered list of unique names.

    Args:
        people: List of person objects with a 'name' field

    Returns:
        List of person names
    """
    if not isinstance(people, list):
        return []
    names = []
    for person in people:
        if isinstance(person, dict):
            name = _parse_text(person.get('name'))
            if name is not None:
                names.append(name.strip())
    return list(dict.fromkeys(names))
