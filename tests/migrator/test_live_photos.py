"""Tests for still/motion pair detection."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType

import pytest
from PIL import Image

from photo_migrator.edge_cases import PairDetector
from photo_migrator.edge_cases.live_photos import pairing_key
from photo_migrator.errors import IssueCategory
from photo_migrator.mime_detector import is_plausible_motion_component
from photo_migrator.models import (
    AssetArena,
    MediaAsset,
    MediaKind,
    MetadataRecord,
    PairRule,
    Provenance,
    RECORD_FIELDS,
    asset_id_for,
)

BASE_TIME = datetime(2023, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
KINDS = {
    ".jpg": MediaKind.IMAGE,
    ".heic": MediaKind.IMAGE,
    ".mov": MediaKind.VIDEO,
    ".mp4": MediaKind.VIDEO,
    ".mp": MediaKind.MOTION_COMPONENT,
    ".mp~2": MediaKind.MOTION_COMPONENT,
}


def make_asset(name, directory="/export/Album"):
    path = Path(directory) / name
    relative = f"Album/{name}"
    return MediaAsset(
        asset_id=asset_id_for(relative),
        path=path,
        relative_path=relative,
        kind=KINDS[path.suffix.lower()],
    )


def timed_record(offset_seconds=None):
    if offset_seconds is None:
        return MetadataRecord.empty()
    provenance = {name: Provenance.NONE for name in RECORD_FIELDS}
    provenance["taken_at"] = Provenance.SIDECAR_JSON
    return MetadataRecord(
        taken_at=BASE_TIME + timedelta(seconds=offset_seconds),
        provenance=MappingProxyType(provenance),
    )


def detect(names, times=None, content_ok=True, **kwargs):
    assets = [make_asset(n) for n in names]
    times = times or {}
    records = {a.asset_id: timed_record(times.get(a.path.name)) for a in assets}
    detector = PairDetector(content_check=lambda path: content_ok, **kwargs)
    return assets, detector.detect(assets, records)


def names_of(assets, ids):
    by_id = {a.asset_id: a.path.name for a in assets}
    return [by_id[i] for i in ids]


class TestPairingKey:
    """Tests for pairing_key."""

    @pytest.mark.parametrize("name,key", [
        ("IMG_0001.JPG", "img_0001"),
        ("IMG_0001.MP", "img_0001"),
        ("PXL_20230101_123.MP.jpg", "pxl_20230101_123"),
        ("PXL_20230101_123.MP", "pxl_20230101_123"),
    ])
    def test_key(self, name, key):
        assert pairing_key(Path(name)) == key


class TestNameRule:
    """Pairs formed by shared base name."""

    def test_pixel_motion_photo(self):
        assets, result = detect(["IMG_0001.JPG", "IMG_0001.MP"])

        assert len(result.pairs) == 1
        assert result.pairs[0].rule is PairRule.NAME
        assert names_of(assets, result.top_level_ids) == ["IMG_0001.JPG"]
        assert result.issues == []

    def test_pixel_mp_jpg_naming(self):
        assets, result = detect(["PXL_1.MP", "PXL_1.MP.jpg"])
        assert len(result.pairs) == 1
        assert names_of(assets, [result.pairs[0].still_id]) == ["PXL_1.MP.jpg"]

    def test_apple_live_photo(self):
        assets, result = detect(["IMG_1234.HEIC", "IMG_1234.MOV"])
        assert len(result.pairs) == 1
        assert names_of(assets, result.top_level_ids) == ["IMG_1234.HEIC"]

    def test_case_insensitive(self):
        _, result = detect(["img_0001.jpg", "IMG_0001.mov"])
        assert len(result.pairs) == 1

    def test_still_pairs_with_at_most_one(self):
        """Motion components are preferred; the extra candidate stays top-level."""
        assets, result = detect(["IMG.JPG", "IMG.MOV", "IMG.MP"])

        assert len(result.pairs) == 1
        assert names_of(assets, [result.pairs[0].motion_id]) == ["IMG.MP"]
        assert names_of(assets, result.top_level_ids) == ["IMG.JPG", "IMG.MOV"]

    def test_unrelated_video_stays_video(self):
        assets, result = detect(["IMG_0001.JPG", "VID_0002.MP4"])
        assert result.pairs == []
        assert result.issues == []
        assert result.unpaired_motion_ids == []

    def test_extension_not_eligible(self):
        _, result = detect(["IMG.JPG", "IMG.MOV"], motion_extensions=[".mp"])
        assert result.pairs == []


class TestProximityRule:
    """Pairs formed by capture time for unclaimed motion components."""

    def test_pairs_within_tolerance(self):
        assets, result = detect(
            ["IMG_A.JPG", "MOTION_X.MP"],
            times={"IMG_A.JPG": 0, "MOTION_X.MP": 0.5},
        )
        assert len(result.pairs) == 1
        assert result.pairs[0].rule is PairRule.PROXIMITY

    def test_outside_tolerance(self):
        assets, result = detect(
            ["IMG_A.JPG", "MOTION_X.MP"],
            times={"IMG_A.JPG": 0, "MOTION_X.MP": 5},
        )
        assert result.pairs == []
        assert names_of(assets, result.unpaired_motion_ids) == ["MOTION_X.MP"]
        assert result.issues == [IssueCategory.UNPAIRED_MOTION_COMPONENT.value]

    def test_ambiguous(self):
        """Several qualifying stills means no pair."""
        _, result = detect(
            ["IMG_A.JPG", "IMG_B.JPG", "MOTION_X.MP"],
            times={"IMG_A.JPG": 0, "IMG_B.JPG": 0.2, "MOTION_X.MP": 0.1},
        )
        assert result.pairs == []
        assert IssueCategory.PAIRING_AMBIGUOUS.value in result.issues
        assert IssueCategory.UNPAIRED_MOTION_COMPONENT.value in result.issues

    def test_missing_timestamps_never_qualify(self):
        _, result = detect(["IMG_A.JPG", "MOTION_X.MP"], times={"MOTION_X.MP": 0})
        assert result.pairs == []

    def test_videos_do_not_pair_by_proximity(self):
        _, result = detect(
            ["IMG_A.JPG", "CLIP.MOV"],
            times={"IMG_A.JPG": 0, "CLIP.MOV": 0},
        )
        assert result.pairs == []
        assert result.issues == []


class TestContentCheck:
    """Candidates identified as non-video are rejected."""

    def test_rejected_candidate(self):
        assets, result = detect(["IMG.JPG", "IMG.MP"], content_ok=False)

        assert result.pairs == []
        assert IssueCategory.PAIRING_CONTENT_MISMATCH.value in result.issues
        assert names_of(assets, result.unpaired_motion_ids) == ["IMG.MP"]

    def test_check_disabled(self):
        _, result = detect(["IMG.JPG", "IMG.MP"], content_ok=False, verify_content=False)
        assert len(result.pairs) == 1

    def test_default_check_reads_signature(self, tmp_path):
        """Unknown bytes are accepted; a recognizable image is not a video."""
        unknown = tmp_path / "IMG.MP"
        unknown.write_bytes(b"\x00" * 64)
        image = tmp_path / "FAKE.MP"
        Image.new("RGB", (4, 4)).save(image, format="PNG")

        assert is_plausible_motion_component(unknown)
        assert not is_plausible_motion_component(image)


class TestConservation:
    """Pairing never loses or duplicates an asset."""

    @pytest.mark.parametrize("names", [
        ["a.jpg"],
        ["a.jpg", "a.mp", "b.jpg", "b.mov", "c.mp", "d.mp4"],
        ["x.mp", "y.mp~2"],
        ["IMG.JPG", "IMG.HEIC", "IMG.MOV"],
    ])
    def test_counts(self, names):
        assets, result = detect(names)
        assert len(assets) == len(result.top_level_ids) + len(result.pairs)
        motion_ids = {p.motion_id for p in result.pairs}
        assert motion_ids.isdisjoint(result.top_level_ids)

    def test_apply_updates_arena(self):
        assets, result = detect(["IMG.JPG", "IMG.MP", "ORPHAN.MP"])
        arena = AssetArena()
        for asset in assets:
            arena.add(asset)

        result.apply(arena)

        still = arena.get(assets[0].asset_id)
        assert still.motion_component_id == assets[1].asset_id
        assert arena.get(assets[2].asset_id).kind is MediaKind.UNKNOWN
