"""Configuration models for the photo migrator."""

import os
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from photo_migrator.common import LoggingConfig


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if not ext.startswith('.'):
        ext = f".{ext}"
    return ext


class ScanConfig(BaseModel):
    """Source tree scanning and album naming."""

    model_config = ConfigDict(extra='forbid')

    source_path: str = Field(
        default="",
        description="Root of the extracted takeout tree"
    )
    skip_hidden: bool = Field(
        default=True,
        description="Skip dot-files and dot-directories (e.g. AppleDouble ._ files)"
    )
    noise_directories: List[str] = Field(
        default_factory=lambda: ["Takeout", "Google Photos"],
        description="Leading directory names stripped from album labels"
    )
    album_separator: str = Field(
        default=" - ",
        description="Separator used to join nested directory names into an album label"
    )
    skip_year_folders: bool = Field(
        default=False,
        description="Treat 'Photos from YYYY' folders as no album"
    )


class MatchingConfig(BaseModel):
    """Sidecar matching heuristics."""

    model_config = ConfigDict(extra='forbid')

    truncated_name_min_length: int = Field(
        default=30,
        ge=1,
        description="Minimum sidecar core length for truncated-name matching"
    )


class MetadataConfig(BaseModel):
    """Metadata reconciliation."""

    model_config = ConfigDict(extra='forbid')

    null_island_tolerance: float = Field(
        default=0.0,
        ge=0.0,
        description="Coordinates with |lat| and |lon| at or below this value mean 'no location'"
    )
    use_ffprobe: bool = Field(
        default=False,
        description="Use ffprobe for video creation time and dimensions. Optional tool."
    )
    keep_sidecar_document: bool = Field(
        default=False,
        description="Keep the raw sidecar document on each record for diagnostics"
    )


class PairingConfig(BaseModel):
    """Still/motion pairing."""

    model_config = ConfigDict(extra='forbid')

    motion_extensions: List[str] = Field(
        default_factory=lambda: [".mp", ".mp~2", ".mov", ".mp4"],
        description="Extensions eligible as the motion half of a pair"
    )
    proximity_tolerance_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Capture time tolerance for pairing by timestamp proximity"
    )
    verify_content: bool = Field(
        default=True,
        description="Reject motion candidates whose magic bytes identify a non-video"
    )

    @field_validator('motion_extensions', mode='after')
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        """Lower-case extensions and ensure a leading dot."""
        return [_normalize_extension(ext) for ext in v]


class MemoryConfig(BaseModel):
    """Memory pressure thresholds, as fractions of total memory."""

    model_config = ConfigDict(extra='forbid')

    medium_threshold: float = Field(default=0.7, gt=0.0, le=1.0)
    high_threshold: float = Field(default=0.8, gt=0.0, le=1.0)
    critical_threshold: float = Field(default=0.9, gt=0.0, le=1.0)
    sample_interval_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Interval of the background sampling thread (0 = sample only at batch boundaries)"
    )
    budget_mb: int | None = Field(
        default=None,
        ge=1,
        description="Treat this many MB as total memory instead of physical RAM"
    )

    @model_validator(mode='after')
    def check_ascending(self) -> 'MemoryConfig':
        """Thresholds must be strictly ascending."""
        if not (self.medium_threshold < self.high_threshold < self.critical_threshold):
            raise ValueError(
                "memory thresholds must satisfy medium < high < critical"
            )
        return self


class BatchConfig(BaseModel):
    """Adaptive batch sizing and pacing."""

    model_config = ConfigDict(extra='forbid')

    initial_size: int = Field(default=250, ge=1, description="Starting batch size")
    min_size: int = Field(default=5, ge=1, description="Batch size floor")
    max_size: int = Field(default=1000, ge=1, description="Batch size ceiling")
    adaptive: bool = Field(
        default=True,
        description="Grow the batch size while memory pressure is normal"
    )
    growth_factor: float = Field(
        default=0.2,
        ge=0.0,
        description="Fraction of the current size added per batch at normal pressure"
    )
    pause_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Pause between batches for memory reclamation"
    )
    skip_pause_when_normal: bool = Field(
        default=True,
        description="Skip the pause while memory pressure is normal"
    )
    max_batch_seconds: float | None = Field(
        default=300.0,
        gt=0.0,
        description="Batches slower than this shrink the next batch. Not a kill signal."
    )

    @model_validator(mode='after')
    def check_bounds(self) -> 'BatchConfig':
        """Sizes must satisfy min <= initial <= max."""
        if not (self.min_size <= self.initial_size <= self.max_size):
            raise ValueError("batch sizes must satisfy min_size <= initial_size <= max_size")
        return self


class RuntimeConfig(BaseModel):
    """Threading, resume and output settings."""

    model_config = ConfigDict(extra='forbid')

    worker_threads: int = Field(
        default_factory=lambda: os.cpu_count() * 2 if os.cpu_count() else 4,
        ge=0,
        description="Worker threads for directory resolution (0 or 1 = sequential)"
    )
    queue_maxsize: int = Field(
        default=32,
        ge=1,
        description="Maximum number of directories in flight between workers and scheduler"
    )
    checkpoint_path: str | None = Field(
        default=None,
        description="File of completed asset ids used to resume an interrupted run"
    )
    manifest_path: str | None = Field(
        default=None,
        description="Write a JSON Lines manifest of emitted items (dry run when unset)"
    )
    progress_log_interval: int = Field(
        default=500,
        ge=1,
        description="Log progress every N files"
    )


class MigratorConfig(BaseModel):
    """Root configuration."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    metadata: MetadataConfig = Field(default_factory=MetadataConfig)
    pairing: PairingConfig = Field(default_factory=PairingConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
