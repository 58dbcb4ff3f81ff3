"""Error classes and issue categories for the migration pipeline.

Only ``EnumerationError`` ends a run. Every other failure is captured at the
stage that owns the item, classified into an issue category and counted in
the run summary.
"""

import json
from enum import Enum

from photo_migrator.common import (
    MigratorError,
    ParseError,
)


class IssueCategory(str, Enum):
    """Categories reported in ``MigrationSummary.issues``."""

    SIDECAR_PARSE = "sidecar_parse"
    SIDECAR_MISSING = "sidecar_missing"
    NO_METADATA_SOURCE = "no_metadata_source"
    INVALID_LOCATION = "invalid_location"
    PAIRING_AMBIGUOUS = "pairing_ambiguous"
    PAIRING_CONTENT_MISMATCH = "pairing_content_mismatch"
    UNPAIRED_MOTION_COMPONENT = "unpaired_motion_component"
    PRESSURE_SAMPLING = "pressure_sampling"
    IMPORT_FAILED = "import_failed"
    ASSET_PROCESSING = "asset_processing"
    UNREADABLE_DIRECTORY = "unreadable_directory"
    UNMATCHED_SIDECAR = "unmatched_sidecar"


class EnumerationError(MigratorError):
    """The source tree cannot be enumerated at all. Fatal for the run."""
    pass


class SidecarParseError(ParseError):
    """A JSON sidecar is unreadable or malformed."""
    pass


class PressureSamplingError(MigratorError):
    """The memory source failed to produce a usable sample.

    Counted by the monitor, never propagated past a sample.
    """
    pass


class ImportFailedError(MigratorError):
    """The asset store could not take an item.

    Raised by sinks; the item is counted as failed and the run continues.
    """
    pass


def classify_error(exception: Exception) -> str:
    """
    Classify an exception into an issue category.

    Args:
        exception: The exception to classify

    Returns:
        One of the ``IssueCategory`` values
    """
    if isinstance(exception, SidecarParseError):
        return IssueCategory.SIDECAR_PARSE.value
    elif isinstance(exception, EnumerationError):
        return IssueCategory.UNREADABLE_DIRECTORY.value
    elif isinstance(exception, json.JSONDecodeError):
        return IssueCategory.SIDECAR_PARSE.value
    else:
        return IssueCategory.ASSET_PROCESSING.value
