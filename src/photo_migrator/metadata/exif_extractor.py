"""Embedded metadata extraction from image files using Pillow."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

logger = logging.getLogger(__name__)

TAG_MAKE = ExifTags.Base.Make
TAG_MODEL = ExifTags.Base.Model
TAG_DATETIME = ExifTags.Base.DateTime
TAG_IMAGE_DESCRIPTION = ExifTags.Base.ImageDescription
TAG_XP_KEYWORDS = ExifTags.Base.XPKeywords
TAG_DATETIME_ORIGINAL = ExifTags.Base.DateTimeOriginal
TAG_DATETIME_DIGITIZED = ExifTags.Base.DateTimeDigitized
TAG_OFFSET_TIME = ExifTags.Base.OffsetTime
TAG_OFFSET_TIME_ORIGINAL = ExifTags.Base.OffsetTimeOriginal
TAG_OFFSET_TIME_DIGITIZED = ExifTags.Base.OffsetTimeDigitized


def extract_exif(file_path: Path) -> Dict[str, Any]:
    """
    Extract embedded metadata from an image file.

    Reads IFD0 (make, model, modification time, description, keywords),
    the Exif IFD (original and digitized times) and the GPS IFD. Files
    Pillow cannot open yield an empty dict.

    Args:
        file_path: Path to image file

    Returns:
        Dictionary with any of:
            - datetime_original: datetime
            - datetime_digitized: datetime
            - datetime_modified: datetime
            - camera_make: str
            - camera_model: str
            - description: str
            - keywords: list of str
            - gps_latitude: float
            - gps_longitude: float
            - gps_altitude: float
            - width: int
            - height: int
    """
    metadata: Dict[str, Any] = {}

    try:
        with Image.open(file_path) as img:
            metadata['width'], metadata['height'] = img.size
            exif_data = img.getexif()

            if not exif_data:
                logger.debug(f"No EXIF data found: {{'path': {str(file_path)!r}}}")
                return metadata

            exif_ifd = exif_data.get_ifd(ExifTags.IFD.Exif)

            _set_text(metadata, 'camera_make', exif_data.get(TAG_MAKE))
            _set_text(metadata, 'camera_model', exif_data.get(TAG_MODEL))
            _set_text(metadata, 'description', exif_data.get(TAG_IMAGE_DESCRIPTION))

            keywords = _parse_xp_keywords(exif_data.get(TAG_XP_KEYWORDS))
            if keywords:
                metadata['keywords'] = keywords

            for key, tag, offset_tag, source in (
                ('datetime_original', TAG_DATETIME_ORIGINAL, TAG_OFFSET_TIME_ORIGINAL, exif_ifd),
                ('datetime_digitized', TAG_DATETIME_DIGITIZED, TAG_OFFSET_TIME_DIGITIZED, exif_ifd),
                ('datetime_modified', TAG_DATETIME, TAG_OFFSET_TIME, exif_data),
            ):
                parsed = _parse_exif_datetime(source.get(tag), exif_ifd.get(offset_tag))
                if parsed is not None:
                    metadata[key] = parsed

            metadata.update(_extract_gps_data(exif_data))

    except Exception as e:
        logger.debug(f"Cannot read embedded metadata: {{'path': {str(file_path)!r}, 'error': {str(e)!r}}}")
        return {}

    return metadata


def _set_text(metadata: Dict[str, Any], key: str, value: Any) -> None:
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='replace')
    if isinstance(value, str):
        value = value.strip().strip('\x00').strip()
        if value:
            metadata[key] = value


def _parse_xp_keywords(value: Any) -> List[str]:
    """Decode the Windows XPKeywords tag (UTF-16LE, ';' separated)."""
    if value is None:
        return []
    if isinstance(value, tuple):
        value = bytes(value)
    if isinstance(value, bytes):
        value = value.decode('utf-16-le', errors='ignore')
    if not isinstance(value, str):
        return []
    keywords = [k.strip().strip('\x00') for k in value.split(';')]
    return list(dict.fromkeys(k for k in keywords if k))


def _extract_gps_data(exif_data: Image.Exif) -> Dict[str, float]:
    """
    Extract GPS coordinates from the GPS IFD.

    Args:
        exif_data: EXIF data from a PIL Image

    Returns:
        Dictionary with gps_latitude, gps_longitude and gps_altitude when present
    """
    gps_info: Dict[str, float] = {}
    gps_ifd = exif_data.get_ifd(ExifTags.IFD.GPSInfo)
    if not gps_ifd:
        return gps_info

    gps_data = {ExifTags.GPSTAGS.get(tag_id, tag_id): value for tag_id, value in gps_ifd.items()}

    lat = _convert_gps_coordinate(gps_data.get('GPSLatitude'))
    lon = _convert_gps_coordinate(gps_data.get('GPSLongitude'))
    if lat is not None and lon is not None:
        if gps_data.get('GPSLatitudeRef') == 'S':
            lat = -lat
        if gps_data.get('GPSLongitudeRef') == 'W':
            lon = -lon
        gps_info['gps_latitude'] = lat
        gps_info['gps_longitude'] = lon

        altitude = _parse_rational(gps_data.get('GPSAltitude'))
        if altitude is not None:
            if gps_data.get('GPSAltitudeRef') in (1, b'\x01'):
                altitude = -altitude  # Below sea level
            gps_info['gps_altitude'] = altitude

    return gps_info


def _convert_gps_coordinate(coord_tuple: Any) -> Optional[float]:
    """
    Convert a (degrees, minutes, seconds) GPS value to decimal degrees.

    Args:
        coord_tuple: Tuple of three rationals

    Returns:
        Decimal coordinate or None if the value is unusable
    """
    if not isinstance(coord_tuple, tuple) or len(coord_tuple) < 3:
        return None
    parts = [_parse_rational(part) for part in coord_tuple[:3]]
    if any(part is None for part in parts):
        return None
    degrees, minutes, seconds = parts
    return degrees + (minutes / 60.0) + (seconds / 3600.0)


def _parse_rational(value: Any) -> Optional[float]:
    """
    Parse an EXIF rational value to float.

    Args:
        value: int, float, IFDRational or (numerator, denominator) tuple

    Returns:
        Float value or None
    """
    if isinstance(value, IFDRational):
        if value.denominator == 0:
            return None
        return float(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, tuple) and len(value) == 2:
        numerator, denominator = value
        if not denominator:
            return None
        return float(numerator) / float(denominator)
    return None


def _parse_exif_datetime(value: Any, offset: Any = None) -> Optional[datetime]:
    """
    Parse an EXIF datetime ("2020:01:01 12:00:00").

    EXIF stores local wall-clock time. When the matching OffsetTime tag is
    present ("+02:00") it is applied; otherwise the value is taken as UTC.

    Args:
        value: EXIF datetime string
        offset: Optional EXIF offset string

    Returns:
        Timezone-aware UTC datetime or None
    """
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='ignore')
    if not isinstance(value, str):
        return None

    value = value.strip().strip('\x00').strip()
    try:
        dt = datetime.strptime(value[:19], "%Y:%m:%d %H:%M:%S")
    except ValueError:
        return None

    tz = _parse_offset(offset) or timezone.utc
    return dt.replace(tzinfo=tz).astimezone(timezone.utc)


def _parse_offset(offset: Any) -> Optional[timezone]:
    if isinstance(offset, bytes):
        offset = offset.decode('ascii', errors='ignore')
    if not isinstance(offset, str):
        return None
    offset = offset.strip().strip('\x00')
    if len(offset) != 6 or offset[0] not in '+-' or offset[3] != ':':
        return None
    try:
        hours, minutes = int(offset[1:3]), int(offset[4:6])
    except ValueError:
        return None
    sign = -1 if offset[0] == '-' else 1
    return timezone(sign * timedelta(hours=hours, minutes=minutes))
