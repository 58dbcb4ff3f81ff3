"""Photo migrator: turns an extracted Google Takeout archive into an ordered,
memory-aware stream of import batches."""

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .config import MigratorConfig
from .errors import EnumerationError, IssueCategory
from .orchestrator import MigrationOrchestrator
from .sinks import AssetSink, DryRunSink, ImportOutcome, JsonLinesSink
from .summary import MigrationSummary

__all__ = [
    "__version__",
    "AssetSink",
    "CancellationToken",
    "DryRunSink",
    "EnumerationError",
    "ImportOutcome",
    "IssueCategory",
    "JsonLinesSink",
    "MigrationOrchestrator",
    "MigrationSummary",
    "MigratorConfig",
]
