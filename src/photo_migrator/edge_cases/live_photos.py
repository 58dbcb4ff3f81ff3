"""Live Photo / Motion Photo pairing.

A live asset is a still image plus a short motion clip:

- Apple Live Photos: ``IMG_1234.HEIC`` + ``IMG_1234.MOV``
- Pixel Motion Photos in Takeout: ``IMG_1234.JPG`` + ``IMG_1234.MP``, or
  ``PXL_..._123.MP.jpg`` + ``PXL_..._123.MP``

Pairs are found within one directory. The name rule runs first; motion
components it leaves unclaimed may still pair by capture-time proximity.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..errors import IssueCategory
from ..mime_detector import is_plausible_motion_component
from ..models import AssetArena, MediaAsset, MediaKind, MetadataRecord, PairRule, Provenance, ResolvedPair

logger = logging.getLogger(__name__)

DEFAULT_MOTION_EXTENSIONS = ('.mp', '.mp~2', '.mov', '.mp4')

# Pixel exports name the still "<base>.MP.jpg"
_STILL_MOTION_MARKER = '.mp'


@dataclass
class PairingResult:
    """Outcome of pairing one directory.

    Attributes:
        pairs: Committed still/motion pairs
        top_level_ids: Asset ids left at top level, in discovery order
        unpaired_motion_ids: Motion components no still claimed
        issues: Issue categories raised while pairing
    """
    pairs: List[ResolvedPair] = field(default_factory=list)
    top_level_ids: List[str] = field(default_factory=list)
    unpaired_motion_ids: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def apply(self, arena: AssetArena) -> None:
        """Record the pairs and re-kind unclaimed motion components in ``arena``."""
        for pair in self.pairs:
            arena.attach_motion_component(pair.still_id, pair.motion_id)
        for motion_id in self.unpaired_motion_ids:
            arena.mark_unknown(motion_id)


def pairing_key(path: Path) -> str:
    """Case-insensitive base name used by the name rule."""
    stem = path.stem.lower()
    if stem.endswith(_STILL_MOTION_MARKER):
        stem = stem[:-len(_STILL_MOTION_MARKER)]
    return stem


class PairDetector:
    """Groups still images with their motion components."""

    def __init__(
        self,
        motion_extensions: Iterable[str] = DEFAULT_MOTION_EXTENSIONS,
        proximity_tolerance_seconds: float = 1.0,
        verify_content: bool = True,
        content_check: Callable[[Path], bool] = is_plausible_motion_component,
    ) -> None:
        self.motion_extensions = frozenset(ext.lower() for ext in motion_extensions)
        self.proximity_tolerance_seconds = proximity_tolerance_seconds
        self.verify_content = verify_content
        self.content_check = content_check

    def is_motion_candidate(self, asset: MediaAsset) -> bool:
        if asset.kind is MediaKind.MOTION_COMPONENT:
            return True
        return asset.kind is MediaKind.VIDEO and asset.path.suffix.lower() in self.motion_extensions

    def detect(
        self,
        assets: Sequence[MediaAsset],
        records: Mapping[str, MetadataRecord],
    ) -> PairingResult:
        """
        Pair the media of one directory.

        Args:
            assets: Media assets of one directory, in discovery order
            records: Reconciled metadata keyed by asset id

        Returns:
            PairingResult; ``len(assets) == len(top_level_ids) + len(pairs)``
        """
        result = PairingResult()
        stills = [a for a in assets if a.kind is MediaKind.IMAGE]
        candidates = [a for a in assets if self.is_motion_candidate(a)]
        if not stills or not candidates:
            self._finish(assets, set(), set(), result)
            return result

        paired_stills: Set[str] = set()
        claimed: Set[str] = set()
        rejected: Set[str] = set()

        # Rule 1: same base name; vendor motion components before plain videos
        by_key: Dict[str, List[MediaAsset]] = {}
        for candidate in sorted(candidates, key=lambda a: a.kind is not MediaKind.MOTION_COMPONENT):
            by_key.setdefault(pairing_key(candidate.path), []).append(candidate)

        for still in stills:
            for candidate in by_key.get(pairing_key(still.path), []):
                if candidate.asset_id in claimed or candidate.asset_id in rejected:
                    continue
                if not self._content_ok(candidate, result):
                    rejected.add(candidate.asset_id)
                    continue
                self._commit(still, candidate, PairRule.NAME, result, paired_stills, claimed)
                break

        # Rule 2: capture time proximity, vendor motion components only
        for candidate in candidates:
            if candidate.kind is not MediaKind.MOTION_COMPONENT:
                continue
            if candidate.asset_id in claimed or candidate.asset_id in rejected:
                continue
            motion_time = _reliable_timestamp(records.get(candidate.asset_id))
            if motion_time is None:
                continue

            near = [
                still for still in stills
                if still.asset_id not in paired_stills
                and self._within_tolerance(_reliable_timestamp(records.get(still.asset_id)), motion_time)
            ]
            if len(near) > 1:
                logger.info(
                    f"Ambiguous proximity pairing: {{'motion': {candidate.relative_path!r}, "
                    f"'stills': {[s.relative_path for s in near]!r}}}"
                )
                result.issues.append(IssueCategory.PAIRING_AMBIGUOUS.value)
                continue
            if len(near) == 1:
                if not self._content_ok(candidate, result):
                    rejected.add(candidate.asset_id)
                    continue
                self._commit(near[0], candidate, PairRule.PROXIMITY, result, paired_stills, claimed)

        self._finish(assets, claimed, paired_stills, result)
        return result

    def _commit(
        self,
        still: MediaAsset,
        motion: MediaAsset,
        rule: PairRule,
        result: PairingResult,
        paired_stills: Set[str],
        claimed: Set[str],
    ) -> None:
        result.pairs.append(ResolvedPair(still_id=still.asset_id, motion_id=motion.asset_id, rule=rule))
        paired_stills.add(still.asset_id)
        claimed.add(motion.asset_id)
        logger.debug(
            f"Detected live pair: {{'still': {still.relative_path!r}, 'motion': {motion.relative_path!r}, "
            f"'rule': {rule.value!r}}}"
        )

    def _content_ok(self, candidate: MediaAsset, result: PairingResult) -> bool:
        if not self.verify_content or self.content_check(candidate.path):
            return True
        logger.info(f"Motion candidate is not a video: {{'path': {candidate.relative_path!r}}}")
        result.issues.append(IssueCategory.PAIRING_CONTENT_MISMATCH.value)
        return False

    def _within_tolerance(self, still_time: Optional[datetime], motion_time: datetime) -> bool:
        if still_time is None:
            return False
        return abs((still_time - motion_time).total_seconds()) <= self.proximity_tolerance_seconds

    def _finish(
        self,
        assets: Sequence[MediaAsset],
        claimed: Set[str],
        paired_stills: Set[str],
        result: PairingResult,
    ) -> None:
        for asset in assets:
            if asset.asset_id in claimed:
                continue
            result.top_level_ids.append(asset.asset_id)
            if asset.kind is MediaKind.MOTION_COMPONENT:
                result.unpaired_motion_ids.append(asset.asset_id)
                result.issues.append(IssueCategory.UNPAIRED_MOTION_COMPONENT.value)
                logger.info(f"Unpaired motion component: {{'path': {asset.relative_path!r}}}")

        if result.pairs:
            logger.debug(f"Detected live pairs: {{'count': {len(result.pairs)}}}")


def _reliable_timestamp(record: Optional[MetadataRecord]) -> Optional[datetime]:
    if record is None or record.taken_at is None:
        return None
    if record.source_of('taken_at') is Provenance.NONE:
        return None
    return record.taken_at
