"""Tests for ffprobe-based video metadata."""

import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import pytest

from photo_migrator.metadata import video_extractor
from photo_migrator.metadata.video_extractor import extract_video_metadata, parse_ffprobe_output

FFPROBE_OUTPUT = {
    "format": {"duration": "3.25", "tags": {"creation_time": "2021-07-04T18:30:00.000000Z"}},
    "streams": [
        {"codec_type": "audio"},
        {"codec_type": "video", "width": 1920, "height": 1080},
        {"codec_type": "video", "width": 320, "height": 240},
    ],
}


class TestParseFfprobeOutput:
    """Tests for parse_ffprobe_output()."""

    def test_fields(self):
        metadata = parse_ffprobe_output(FFPROBE_OUTPUT)

        assert metadata["width"] == 1920
        assert metadata["height"] == 1080
        assert metadata["duration_seconds"] == 3.25
        assert metadata["creation_time"] == datetime(2021, 7, 4, 18, 30, tzinfo=timezone.utc)

    def test_stream_creation_time_fallback(self):
        data = {"streams": [{"codec_type": "video", "tags": {"creation_time": "2019-01-02T03:04:05Z"}}]}
        assert parse_ffprobe_output(data)["creation_time"] == datetime(2019, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_epoch_creation_time_ignored(self):
        data = {"format": {"tags": {"creation_time": "1970-01-01T00:00:00Z"}}}
        assert "creation_time" not in parse_ffprobe_output(data)

    def test_garbage(self):
        data = {"format": {"duration": "n/a", "tags": {"creation_time": "yesterday"}}}
        assert parse_ffprobe_output(data) == {}


class TestExtractVideoMetadata:
    def test_runs_ffprobe(self, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 0, stdout=json.dumps(FFPROBE_OUTPUT), stderr="")

        monkeypatch.setattr(video_extractor.subprocess, "run", fake_run)

        metadata = extract_video_metadata(Path("/export/clip.mp4"))

        assert calls[0][0] == "ffprobe"
        assert calls[0][-1] == "/export/clip.mp4"
        assert metadata["width"] == 1920

    def test_missing_ffprobe_raises(self, monkeypatch):
        def fake_run(args, **kwargs):
            raise FileNotFoundError("ffprobe")

        monkeypatch.setattr(video_extractor.subprocess, "run", fake_run)

        with pytest.raises(FileNotFoundError):
            extract_video_metadata(Path("/export/clip.mp4"))
