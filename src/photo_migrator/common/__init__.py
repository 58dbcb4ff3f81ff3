"""Shared utilities for photo_migrator: config loading, logging, errors and paths."""

from .config import ConfigLoader
from .logging import setup_logging, setup_logging_from_config, LogContext
from .logging_config import LoggingConfig
from .errors import (
    MigratorError, FileProcessingError, PermissionDeniedError,
    CorruptedFileError, ParseError
)
from .path_utils import normalize_path, relative_to_root

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'setup_logging',
    'setup_logging_from_config',
    'LogContext',
    'MigratorError',
    'FileProcessingError',
    'PermissionDeniedError',
    'CorruptedFileError',
    'ParseError',
    'normalize_path',
    'relative_to_root',
]
