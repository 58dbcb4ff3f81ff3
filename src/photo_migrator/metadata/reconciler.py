"""Metadata reconciliation with field-level precedence.

Every field resolves independently:

    sidecar JSON field -> embedded technical metadata -> absent

and records where its value came from. The capture timestamp follows a
fixed chain, each level resolved sidecar-first:

    photo-taken-time  (photoTakenTime,   EXIF DateTimeOriginal)
    creation-time     (creationTime,     EXIF DateTimeDigitized / video creation_time)
    modification-time (modificationTime, EXIF DateTime)

The first level with a value wins; values are never merged.
"""

import json
import logging
import math
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import IssueCategory, SidecarParseError
from ..models import (
    GeoLocation,
    MediaKind,
    MetadataRecord,
    Provenance,
    RECORD_FIELDS,
    SidecarDocument,
)
from .exif_extractor import extract_exif
from .json_parser import parse_json_sidecar
from .video_extractor import extract_video_metadata

logger = logging.getLogger(__name__)

# (sidecar key, embedded keys) per level of the timestamp chain
TIMESTAMP_CHAIN: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('photoTakenTime', ('datetime_original',)),
    ('creationTime', ('datetime_digitized', 'creation_time')),
    ('modificationTime', ('datetime_modified',)),
)

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


@dataclass
class ReconcileResult:
    """A reconciled record plus the issue categories raised on the way."""
    record: MetadataRecord
    issues: List[str] = field(default_factory=list)


class MetadataReconciler:
    """Builds a ``MetadataRecord`` from a sidecar and the file itself."""

    def __init__(
        self,
        null_island_tolerance: float = 0.0,
        use_ffprobe: bool = False,
        keep_sidecar_document: bool = False,
    ) -> None:
        self.null_island_tolerance = null_island_tolerance
        self.use_ffprobe = use_ffprobe
        self.keep_sidecar_document = keep_sidecar_document

    def reconcile(
        self,
        media_path: Path,
        sidecar_path: Optional[Path] = None,
        media_kind: MediaKind = MediaKind.IMAGE,
    ) -> ReconcileResult:
        """
        Reconcile metadata for one media file.

        A malformed sidecar is recorded as an issue and the file falls back
        to its embedded metadata; it never raises for bad input.

        Args:
            media_path: Path to the media file
            sidecar_path: Matched sidecar, if any
            media_kind: Kind of the media file (selects the embedded reader)

        Returns:
            ReconcileResult with the record and issue categories
        """
        issues: List[str] = []
        sidecar: Dict[str, Any] = {}
        used_sidecar: Optional[Path] = None

        if sidecar_path is not None:
            try:
                sidecar = parse_json_sidecar(sidecar_path)
                used_sidecar = sidecar_path
            except SidecarParseError as e:
                logger.warning(
                    f"Sidecar parse failed, using embedded metadata: "
                    f"{{'media': {str(media_path)!r}, 'sidecar': {str(sidecar_path)!r}, 'error': {e.message!r}}}"
                )
                issues.append(IssueCategory.SIDECAR_PARSE.value)

        embedded = self.read_embedded(media_path, media_kind)

        if not sidecar and not embedded:
            issues.append(IssueCategory.NO_METADATA_SOURCE.value)
        elif sidecar_path is None:
            issues.append(IssueCategory.SIDECAR_MISSING.value)

        values: Dict[str, Any] = {}
        provenance: Dict[str, Provenance] = {name: Provenance.NONE for name in RECORD_FIELDS}

        def resolve(name: str, sidecar_keys: Sequence[str], embedded_keys: Sequence[str]) -> None:
            value, source = _first_present(sidecar, sidecar_keys, embedded, embedded_keys)
            if value is not None:
                values[name] = value
                provenance[name] = source

        resolve('title', ('title',), ())
        resolve('description', ('description',), ('description',))
        resolve('is_favorite', ('favorited',), ())
        resolve('camera_make', (), ('camera_make',))
        resolve('camera_model', (), ('camera_model',))
        resolve('width', (), ('width',))
        resolve('height', (), ('height',))

        for name, key in (('people', 'people'), ('keywords', 'keywords')):
            value, source = _first_present(sidecar, (key,), embedded, (key,) if name == 'keywords' else ())
            if value:
                values[name] = tuple(value)
                provenance[name] = source

        for sidecar_key, embedded_keys in TIMESTAMP_CHAIN:
            value, source = _first_present(sidecar, (sidecar_key,), embedded, embedded_keys)
            if value is not None:
                values['taken_at'] = value
                provenance['taken_at'] = source
                break

        location, source, invalid = self._resolve_location(sidecar, embedded)
        if invalid:
            logger.warning(f"Rejected out-of-range location: {{'media': {str(media_path)!r}}}")
            issues.append(IssueCategory.INVALID_LOCATION.value)
        if location is not None:
            values['location'] = location
            provenance['location'] = source

        document = None
        if self.keep_sidecar_document and 'document' in sidecar:
            document = SidecarDocument(sidecar['document'])

        record = MetadataRecord(
            **values,
            provenance=MappingProxyType(provenance),
            sidecar_path=used_sidecar,
            document=document,
        )
        sources = {k: v.value for k, v in provenance.items() if v is not Provenance.NONE}
        logger.debug(f"Reconciled metadata: {{'media': {str(media_path)!r}, 'sources': {sources!r}}}")
        return ReconcileResult(record=record, issues=issues)

    def read_embedded(self, media_path: Path, media_kind: MediaKind) -> Dict[str, Any]:
        """Read embedded technical metadata appropriate to ``media_kind``."""
        if media_kind is MediaKind.IMAGE:
            return extract_exif(media_path)

        if not self.use_ffprobe:
            return {}

        try:
            return extract_video_metadata(media_path)
        except FileNotFoundError:
            logger.warning("ffprobe not found - video metadata extraction disabled")
            self.use_ffprobe = False
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, json.JSONDecodeError) as e:
            logger.debug(f"ffprobe failed: {{'path': {str(media_path)!r}, 'error': {str(e)!r}}}")
        return {}

    def _resolve_location(
        self, sidecar: Dict[str, Any], embedded: Dict[str, Any]
    ) -> Tuple[Optional[GeoLocation], Provenance, bool]:
        """
        Pick the first usable location: geoData, geoDataExif, then EXIF GPS.

        A null-island value means "no location" and is skipped silently. An
        out-of-range value is rejected and reported.

        Returns:
            Tuple of (location or None, provenance, whether an invalid value was seen)
        """
        candidates = []
        for key in ('geoData', 'geoDataExif'):
            geo = sidecar.get(key)
            if geo:
                candidates.append((geo.get('latitude'), geo.get('longitude'), geo.get('altitude'), Provenance.SIDECAR_JSON))
        if 'gps_latitude' in embedded:
            candidates.append((
                embedded.get('gps_latitude'),
                embedded.get('gps_longitude'),
                embedded.get('gps_altitude'),
                Provenance.EMBEDDED_EXIF,
            ))

        invalid = False
        for lat, lon, alt, source in candidates:
            if lat is None or lon is None:
                continue
            if not (math.isfinite(lat) and math.isfinite(lon)):
                invalid = True
                continue
            if self.is_null_island(lat, lon):
                continue
            if not (LATITUDE_RANGE[0] <= lat <= LATITUDE_RANGE[1]) or not (LONGITUDE_RANGE[0] <= lon <= LONGITUDE_RANGE[1]):
                invalid = True
                continue
            if alt is not None and not math.isfinite(alt):
                alt = None
            return GeoLocation(latitude=lat, longitude=lon, altitude=alt), source, invalid

        return None, Provenance.NONE, invalid

    def is_null_island(self, latitude: float, longitude: float) -> bool:
        """True for the exporter's "no location" sentinel (0.0, 0.0 by default)."""
        tol = self.null_island_tolerance
        return abs(latitude) <= tol and abs(longitude) <= tol


def _first_present(
    sidecar: Dict[str, Any],
    sidecar_keys: Sequence[str],
    embedded: Dict[str, Any],
    embedded_keys: Sequence[str],
) -> Tuple[Any, Provenance]:
    for key in sidecar_keys:
        if sidecar.get(key) is not None:
            return sidecar[key], Provenance.SIDECAR_JSON
    for key in embedded_keys:
        if embedded.get(key) is not None:
            return embedded[key], Provenance.EMBEDDED_EXIF
    return None, Provenance.NONE
