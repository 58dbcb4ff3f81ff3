"""Asset store interface and the stores shipped with the migrator.

The migrator never talks to a photo library directly: it hands each
``BatchItem`` to an ``AssetSink``. A sink reports failure through its
``ImportOutcome`` or by raising; either way the failure stays with that item.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, TextIO

from .errors import ImportFailedError
from .models import BatchItem, MediaAsset, MetadataRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportOutcome:
    success: bool
    asset_handle: Optional[str] = None
    error: Optional[str] = None


class AssetSink(Protocol):
    def import_item(self, item: BatchItem) -> ImportOutcome:
        ...


def record_to_dict(record: MetadataRecord) -> Dict[str, Any]:
    """Serializable view of a metadata record (the sidecar document is omitted)."""
    location = None
    if record.location is not None:
        location = {
            'latitude': record.location.latitude,
            'longitude': record.location.longitude,
            'altitude': record.location.altitude,
        }
    return {
        'title': record.title,
        'description': record.description,
        'taken_at': record.taken_at.isoformat() if record.taken_at else None,
        'location': location,
        'is_favorite': record.is_favorite,
        'people': list(record.people),
        'keywords': list(record.keywords),
        'camera_make': record.camera_make,
        'camera_model': record.camera_model,
        'width': record.width,
        'height': record.height,
        'provenance': {name: source.value for name, source in record.provenance.items()},
        'sidecar_path': str(record.sidecar_path) if record.sidecar_path else None,
    }


def asset_to_dict(asset: MediaAsset) -> Dict[str, Any]:
    return {
        'asset_id': asset.asset_id,
        'relative_path': asset.relative_path,
        'kind': asset.kind.value,
        'albums': list(asset.albums),
    }


def item_to_dict(item: BatchItem) -> Dict[str, Any]:
    data = {
        'asset': asset_to_dict(item.asset),
        'record': record_to_dict(item.record),
        'album': item.album_label or None,
        'motion': None,
    }
    if item.motion_asset is not None:
        data['motion'] = {
            'asset': asset_to_dict(item.motion_asset),
            'record': record_to_dict(item.motion_record) if item.motion_record else None,
        }
    return data


class DryRunSink:
    """Accepts every item without storing anything."""

    def __init__(self) -> None:
        self.imported = 0

    def import_item(self, item: BatchItem) -> ImportOutcome:
        self.imported += item.file_count
        logger.debug(f"Dry run import: {{'asset': {item.asset.relative_path!r}, 'files': {item.file_count}}}")
        return ImportOutcome(success=True, asset_handle=item.asset.asset_id)


class JsonLinesSink:
    """Writes one JSON document per item to a manifest file.

    Usage:
        with JsonLinesSink(Path("manifest.jsonl")) as sink:
            orchestrator = MigrationOrchestrator(config, sink)
    """

    def __init__(self, path: Path, append: bool = False):
        self.path = Path(path)
        self.append = append
        self._handle: Optional[TextIO] = None

    def open(self) -> None:
        if self._handle is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.path, 'a' if self.append else 'w', encoding='utf-8')
            logger.info(f"Writing manifest: {{'path': {str(self.path)!r}}}")

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def import_item(self, item: BatchItem) -> ImportOutcome:
        try:
            self.open()
            self._handle.write(json.dumps(item_to_dict(item), ensure_ascii=False) + "\n")
            self._handle.flush()
        except OSError as e:
            raise ImportFailedError(
                f"Cannot write manifest entry: {e}",
                path=str(self.path),
                asset=item.asset.relative_path,
            ) from e
        return ImportOutcome(success=True, asset_handle=item.asset.asset_id)

    def __enter__(self) -> 'JsonLinesSink':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
