"""Shared fixtures: takeout trees, scripted memory, recording sinks."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest
from PIL import ExifTags, Image

from photo_migrator.config import MigratorConfig
from photo_migrator.sinks import ImportOutcome


class TakeoutBuilder:
    """Writes a fake extracted takeout tree under ``root``."""

    def __init__(self, root: Path):
        self.root = root

    def path(self, relative: str) -> Path:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def file(self, relative: str, data: bytes = b"\x00\x01 not really media") -> Path:
        target = self.path(relative)
        target.write_bytes(data)
        return target

    def jpeg(
        self,
        relative: str,
        make: Optional[str] = None,
        model: Optional[str] = None,
        modified: Optional[str] = None,
        description: Optional[str] = None,
        size=(8, 6),
    ) -> Path:
        """Write a real JPEG, optionally with IFD0 EXIF tags."""
        target = self.path(relative)
        exif = Image.Exif()
        if make:
            exif[ExifTags.Base.Make] = make
        if model:
            exif[ExifTags.Base.Model] = model
        if modified:
            exif[ExifTags.Base.DateTime] = modified
        if description:
            exif[ExifTags.Base.ImageDescription] = description
        Image.new("RGB", size, color=(200, 30, 30)).save(target, format="JPEG", exif=exif.tobytes())
        return target

    def sidecar(
        self,
        relative: str,
        taken: Optional[datetime] = None,
        created: Optional[datetime] = None,
        **fields,
    ) -> Path:
        """Write a sidecar document; ``relative`` is the sidecar's own path."""
        data: Dict = dict(fields)
        if taken is not None:
            data["photoTakenTime"] = {"timestamp": str(int(taken.timestamp()))}
        if created is not None:
            data["creationTime"] = {"timestamp": str(int(created.timestamp()))}
        target = self.path(relative)
        target.write_text(json.dumps(data), encoding="utf-8")
        return target

    def raw(self, relative: str, text: str) -> Path:
        target = self.path(relative)
        target.write_text(text, encoding="utf-8")
        return target


class FakeMemorySource:
    """Memory source that replays scripted usage ratios.

    Each sample consumes the next ratio; the last one repeats. An exception
    instance in the script is raised instead of returning a value.
    """

    def __init__(self, ratios: Sequence[Union[float, Exception]] = (0.1,), total: int = 1_000_000):
        self.ratios = list(ratios)
        self.total = total
        self.calls = 0

    def current_usage(self) -> int:
        index = min(self.calls, len(self.ratios) - 1)
        self.calls += 1
        ratio = self.ratios[index]
        if isinstance(ratio, Exception):
            raise ratio
        return int(ratio * self.total)

    def total_memory(self) -> int:
        return self.total


class RecordingSink:
    """Sink that remembers every item and can fail or raise on demand."""

    def __init__(
        self,
        fail_names: Sequence[str] = (),
        raise_names: Sequence[str] = (),
        on_import: Optional[Callable] = None,
    ):
        self.fail_names = set(fail_names)
        self.raise_names = set(raise_names)
        self.on_import = on_import
        self.items: List = []

    def import_item(self, item) -> ImportOutcome:
        self.items.append(item)
        if self.on_import is not None:
            self.on_import(item)
        name = item.asset.path.name
        if name in self.raise_names:
            raise RuntimeError(f"store rejected {name}")
        if name in self.fail_names:
            return ImportOutcome(success=False, error="rejected")
        return ImportOutcome(success=True, asset_handle=item.asset.asset_id)

    @property
    def names(self) -> List[str]:
        return [item.asset.path.name for item in self.items]


@pytest.fixture
def takeout(tmp_path):
    """Builder for a takeout tree rooted at ``tmp_path / 'export'``."""
    root = tmp_path / "export"
    root.mkdir()
    return TakeoutBuilder(root)


@pytest.fixture
def fake_memory():
    """Factory for scripted memory sources: ``fake_memory([0.1, 0.95])``."""
    return FakeMemorySource


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def sink_factory():
    return RecordingSink


@pytest.fixture
def make_config():
    """Factory for fast, deterministic configs (no pauses, no sampler thread)."""
    def _make(**sections) -> MigratorConfig:
        data = {
            "batch": {"initial_size": 10, "min_size": 2, "max_size": 50, "pause_seconds": 0.0},
            "memory": {"sample_interval_seconds": 0.0},
            "runtime": {"worker_threads": 0, "queue_maxsize": 4, "progress_log_interval": 1},
        }
        for section, values in sections.items():
            data.setdefault(section, {}).update(values)
        return MigratorConfig.model_validate(data)
    return _make


@pytest.fixture
def utc():
    def _utc(*args) -> datetime:
        return datetime(*args, tzinfo=timezone.utc)
    return _utc
