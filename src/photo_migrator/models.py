"""Value records shared across the migration pipeline.

Assets are immutable records addressed by a stable id. Pairing and album
resolution never mutate an asset in place: they replace the record held by an
``AssetArena`` so that no two stages share a mutable object.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from photo_migrator.common import normalize_path

# Namespace for asset ids; uuid5 over the normalized relative path
ASSET_NAMESPACE = uuid.UUID('6ba7b810-9dad-11d1-80b4-00c04fd430c8')


class EntryKind(str, Enum):
    MEDIA = "media"
    SIDECAR = "sidecar"
    IGNORABLE = "ignorable"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    MOTION_COMPONENT = "motion_component"
    UNKNOWN = "unknown"


class Provenance(str, Enum):
    """Source of a reconciled metadata field."""
    SIDECAR_JSON = "sidecar-json"
    EMBEDDED_EXIF = "embedded-exif"
    NONE = "none"


class MemoryPressureLevel(int, Enum):
    """Coarse memory pressure, ordered by severity."""
    NORMAL = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Classification:
    kind: EntryKind
    media_kind: Optional[MediaKind] = None


@dataclass(frozen=True)
class RawEntry:
    """A scanned path and its extension-derived classification."""
    path: Path
    classification: Classification

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class DirectoryListing:
    """Entries of one directory, in sorted order.

    Attributes:
        index: Position of the directory in discovery order
        directory: Absolute directory path
        relative_path: Directory relative to the archive root ('' for the root)
        entries: Classified entries of this directory
    """
    index: int
    directory: Path
    relative_path: str
    entries: Tuple[RawEntry, ...]

    def media_entries(self) -> Tuple[RawEntry, ...]:
        return tuple(e for e in self.entries if e.classification.kind is EntryKind.MEDIA)

    def sidecar_names(self) -> Tuple[str, ...]:
        return tuple(e.name for e in self.entries if e.classification.kind is EntryKind.SIDECAR)


def asset_id_for(relative_path: str) -> str:
    """Stable asset id for a path relative to the archive root."""
    return str(uuid.uuid5(ASSET_NAMESPACE, normalize_path(relative_path)))


@dataclass(frozen=True)
class MediaAsset:
    """One discovered media file.

    Attributes:
        asset_id: Stable id derived from the relative path
        path: Absolute file location
        relative_path: Normalized path relative to the archive root
        kind: Media kind
        albums: Album labels the asset belongs to
        motion_component_id: Id of the motion component absorbed by this still
    """
    asset_id: str
    path: Path
    relative_path: str
    kind: MediaKind
    albums: Tuple[str, ...] = ()
    motion_component_id: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: RawEntry, relative_path: str) -> 'MediaAsset':
        return cls(
            asset_id=asset_id_for(relative_path),
            path=entry.path,
            relative_path=normalize_path(relative_path),
            kind=entry.classification.media_kind or MediaKind.UNKNOWN,
        )


class AssetArena:
    """Assets keyed by id, updated only through explicit operations."""

    def __init__(self) -> None:
        self._assets: Dict[str, MediaAsset] = {}

    def add(self, asset: MediaAsset) -> None:
        if asset.asset_id in self._assets:
            raise ValueError(f"Duplicate asset id: {asset.asset_id} ({asset.relative_path})")
        self._assets[asset.asset_id] = asset

    def get(self, asset_id: str) -> MediaAsset:
        return self._assets[asset_id]

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self) -> Iterator[MediaAsset]:
        return iter(self._assets.values())

    def attach_motion_component(self, still_id: str, motion_id: str) -> MediaAsset:
        still = self._assets[still_id]
        if still.motion_component_id is not None:
            raise ValueError(f"Asset {still_id} already owns motion component {still.motion_component_id}")
        if motion_id not in self._assets:
            raise KeyError(motion_id)
        updated = replace(still, motion_component_id=motion_id)
        self._assets[still_id] = updated
        return updated

    def annotate_album(self, asset_id: str, label: str) -> MediaAsset:
        asset = self._assets[asset_id]
        if not label or label in asset.albums:
            return asset
        updated = replace(asset, albums=asset.albums + (label,))
        self._assets[asset_id] = updated
        return updated

    def mark_unknown(self, asset_id: str) -> MediaAsset:
        updated = replace(self._assets[asset_id], kind=MediaKind.UNKNOWN)
        self._assets[asset_id] = updated
        return updated


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    altitude: Optional[float] = None


class SidecarDocument:
    """Read-only view of a parsed sidecar, kept for diagnostics only."""

    __slots__ = ('_data',)

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = MappingProxyType(dict(data))

    @property
    def raw(self) -> Mapping[str, Any]:
        return self._data

    def __repr__(self) -> str:
        return f"SidecarDocument(keys={sorted(self._data)})"


RECORD_FIELDS = (
    'title',
    'description',
    'taken_at',
    'location',
    'is_favorite',
    'people',
    'keywords',
    'camera_make',
    'camera_model',
    'width',
    'height',
)


@dataclass(frozen=True)
class MetadataRecord:
    """Reconciled metadata for one media file.

    ``provenance`` maps every name in ``RECORD_FIELDS`` to the source that
    supplied it. ``taken_at`` is a single timezone-aware instant.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    taken_at: Optional[datetime] = None
    location: Optional[GeoLocation] = None
    is_favorite: Optional[bool] = None
    people: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    provenance: Mapping[str, Provenance] = field(
        default_factory=lambda: MappingProxyType({name: Provenance.NONE for name in RECORD_FIELDS})
    )
    sidecar_path: Optional[Path] = None
    document: Optional[SidecarDocument] = None

    @classmethod
    def empty(cls) -> 'MetadataRecord':
        return cls()

    def source_of(self, field_name: str) -> Provenance:
        return self.provenance.get(field_name, Provenance.NONE)

    @property
    def has_any_source(self) -> bool:
        return any(p is not Provenance.NONE for p in self.provenance.values())


class PairRule(str, Enum):
    NAME = "name"
    PROXIMITY = "proximity"


@dataclass(frozen=True)
class ResolvedPair:
    still_id: str
    motion_id: str
    rule: PairRule


@dataclass(frozen=True)
class BatchItem:
    """One unit handed to the asset store: a single file or a still+motion pair."""
    asset: MediaAsset
    record: MetadataRecord
    album_label: str = ""
    motion_asset: Optional[MediaAsset] = None
    motion_record: Optional[MetadataRecord] = None

    @property
    def file_count(self) -> int:
        return 2 if self.motion_asset is not None else 1

    @property
    def asset_ids(self) -> Tuple[str, ...]:
        if self.motion_asset is not None:
            return (self.asset.asset_id, self.motion_asset.asset_id)
        return (self.asset.asset_id,)


@dataclass(frozen=True)
class Batch:
    index: int
    items: Tuple[BatchItem, ...]
    pressure: MemoryPressureLevel = MemoryPressureLevel.NORMAL

    def __len__(self) -> int:
        return len(self.items)

    @property
    def file_count(self) -> int:
        return sum(item.file_count for item in self.items)
