"""Tests for magic-byte MIME detection."""

from PIL import Image

from photo_migrator.mime_detector import (
    UNKNOWN_MIME_TYPE,
    detect_mime_type,
    is_plausible_motion_component,
)

# Minimal ISO BMFF header: 'ftyp' box with brand 'isom'
MP4_HEADER = b"\x00\x00\x00\x18ftypisom\x00\x00\x02\x00isomiso2" + b"\x00" * 16


class TestDetectMimeType:
    """Tests for detect_mime_type()."""

    def test_jpeg(self, tmp_path):
        path = tmp_path / "photo.MP"
        Image.new("RGB", (4, 4)).save(path, format="JPEG")
        assert detect_mime_type(path) == "image/jpeg"

    def test_mp4(self, tmp_path):
        path = tmp_path / "clip.MP"
        path.write_bytes(MP4_HEADER)
        assert detect_mime_type(path) == "video/mp4"

    def test_unrecognized(self, tmp_path):
        path = tmp_path / "blob.MP"
        path.write_bytes(b"\x00\x01 nothing here")
        assert detect_mime_type(path) == UNKNOWN_MIME_TYPE

    def test_missing_file(self, tmp_path):
        assert detect_mime_type(tmp_path / "missing.MP") == UNKNOWN_MIME_TYPE


class TestIsPlausibleMotionComponent:
    """A motion candidate is rejected only when it is positively not a video."""

    def test_video_accepted(self, tmp_path):
        path = tmp_path / "clip.MP"
        path.write_bytes(MP4_HEADER)
        assert is_plausible_motion_component(path)

    def test_unknown_accepted(self, tmp_path):
        path = tmp_path / "clip.MP"
        path.write_bytes(b"\x00\x01 nothing here")
        assert is_plausible_motion_component(path)

    def test_image_rejected(self, tmp_path):
        path = tmp_path / "clip.MP"
        Image.new("RGB", (4, 4)).save(path, format="JPEG")
        assert not is_plausible_motion_component(path)
