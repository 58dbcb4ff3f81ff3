"""Per-directory resolution.

Resolves one ``DirectoryListing`` into finished ``BatchItem``s:

1. Build assets from the classified media entries
2. Match each media file to at most one sibling sidecar
3. Reconcile metadata per asset
4. Pair stills with motion components
5. Resolve the directory's album label

Everything runs inside one directory, so directories can be resolved in
parallel and independently of each other.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from .album_resolver import AlbumPathResolver
from .cancellation import CancellationToken
from .classifier import PathClassifier
from .config import MigratorConfig
from .edge_cases import PairDetector
from .errors import classify_error
from .metadata import MetadataReconciler
from .models import AssetArena, BatchItem, DirectoryListing, MediaAsset, MetadataRecord
from .sidecar_matcher import SidecarMatcher

logger = logging.getLogger(__name__)


@dataclass
class ResolveContext:
    """Stateless collaborators shared by every directory of a run."""
    classifier: PathClassifier
    matcher: SidecarMatcher
    reconciler: MetadataReconciler
    pair_detector: PairDetector
    album_resolver: AlbumPathResolver

    @classmethod
    def from_config(cls, config: MigratorConfig) -> 'ResolveContext':
        return cls(
            classifier=PathClassifier(),
            matcher=SidecarMatcher(truncated_name_min_length=config.matching.truncated_name_min_length),
            reconciler=MetadataReconciler(
                null_island_tolerance=config.metadata.null_island_tolerance,
                use_ffprobe=config.metadata.use_ffprobe,
                keep_sidecar_document=config.metadata.keep_sidecar_document,
            ),
            pair_detector=PairDetector(
                motion_extensions=config.pairing.motion_extensions,
                proximity_tolerance_seconds=config.pairing.proximity_tolerance_seconds,
                verify_content=config.pairing.verify_content,
            ),
            album_resolver=AlbumPathResolver(
                noise_directories=config.scan.noise_directories,
                separator=config.scan.album_separator,
                skip_year_folders=config.scan.skip_year_folders,
            ),
        )


@dataclass
class DirectoryResult:
    """Resolved contents of one directory.

    Attributes:
        index: Discovery index of the directory
        relative_path: Directory relative to the archive root
        items: BatchItems in discovery order
        issues: Issue counts by category
        sidecars_matched: Sidecar paths claimed by some media file
        media_count: Media files in the directory
        pairs: Still/motion pairs reconstructed
        album_label: Album label ('' when none)
        cancelled: True if resolution stopped early; ``items`` is then empty
        failed_files: Media files dropped before resolution, counted as failed
    """
    index: int
    relative_path: str
    items: List[BatchItem] = field(default_factory=list)
    issues: Counter = field(default_factory=Counter)
    sidecars_matched: Set[Path] = field(default_factory=set)
    media_count: int = 0
    pairs: int = 0
    album_label: str = ""
    cancelled: bool = False
    failed_files: int = 0


def _relative_file_path(listing: DirectoryListing, name: str) -> str:
    if listing.relative_path:
        return f"{listing.relative_path}/{name}"
    return name


def resolve_directory(
    listing: DirectoryListing,
    context: ResolveContext,
    cancel_token: Optional[CancellationToken] = None,
) -> DirectoryResult:
    """
    Resolve one directory into BatchItems.

    A failure on one asset is recorded as an issue and the asset is kept with
    an empty record, so every media file of the directory yields exactly one
    item or one half of a pair. The exception is a file whose normalized path
    collides with an earlier sibling: it cannot be told apart by id, so it is
    dropped and counted in ``failed_files``.

    Args:
        listing: Directory to resolve
        context: Shared collaborators
        cancel_token: Checked before each asset

    Returns:
        DirectoryResult
    """
    media_entries = listing.media_entries()
    result = DirectoryResult(
        index=listing.index,
        relative_path=listing.relative_path,
        media_count=len(media_entries),
    )
    sidecar_names = frozenset(listing.sidecar_names())

    arena = AssetArena()
    ordered: List[MediaAsset] = []
    records: Dict[str, MetadataRecord] = {}

    for entry in media_entries:
        if cancel_token is not None and cancel_token.is_cancelled:
            logger.debug(f"Directory resolution cancelled: {{'directory': {listing.relative_path!r}}}")
            result.cancelled = True
            return result

        asset = MediaAsset.from_entry(entry, _relative_file_path(listing, entry.name))
        try:
            arena.add(asset)
        except ValueError as e:
            # Sibling names equal after normalization share one id
            logger.error(f"Failed to register asset {asset.relative_path}: {e}")
            result.issues[classify_error(e)] += 1
            result.failed_files += 1
            continue
        ordered.append(asset)

        try:
            match = context.matcher.match(entry.path, sidecar_names)
            sidecar_path = match.path if match else None
            if match:
                result.sidecars_matched.add(match.path)
                logger.debug(
                    f"Matched sidecar: {{'media': {asset.relative_path!r}, "
                    f"'sidecar': {match.path.name!r}, 'rule': {match.rule.value!r}}}"
                )
            reconciled = context.reconciler.reconcile(entry.path, sidecar_path, asset.kind)
            records[asset.asset_id] = reconciled.record
            result.issues.update(reconciled.issues)
        except Exception as e:
            category = classify_error(e)
            logger.error(f"Failed to resolve asset {asset.relative_path}: {e}", exc_info=True)
            result.issues[category] += 1
            records[asset.asset_id] = MetadataRecord.empty()

    pairing = context.pair_detector.detect(ordered, records)
    pairing.apply(arena)
    result.issues.update(pairing.issues)
    result.pairs = len(pairing.pairs)

    label = context.album_resolver.resolve(listing.relative_path)
    result.album_label = label

    for asset_id in pairing.top_level_ids:
        asset = _annotate(arena, asset_id, label)
        motion_asset = None
        motion_record = None
        if asset.motion_component_id is not None:
            motion_asset = _annotate(arena, asset.motion_component_id, label)
            motion_record = records[motion_asset.asset_id]
        result.items.append(BatchItem(
            asset=asset,
            record=records[asset_id],
            album_label=label,
            motion_asset=motion_asset,
            motion_record=motion_record,
        ))

    logger.debug(
        f"Resolved directory: {{'directory': {listing.relative_path!r}, 'media': {result.media_count}, "
        f"'items': {len(result.items)}, 'pairs': {result.pairs}, 'album': {label!r}}}"
    )
    return result


def _annotate(arena: AssetArena, asset_id: str, label: str) -> MediaAsset:
    if label:
        return arena.annotate_album(asset_id, label)
    return arena.get(asset_id)
