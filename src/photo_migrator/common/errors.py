"""Base error definitions for photo_migrator packages."""

from typing import Any, Dict


class MigratorError(Exception):
    """Base exception for all photo_migrator errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class FileProcessingError(MigratorError):
    """Base exception for file processing errors."""
    pass


class PermissionDeniedError(FileProcessingError):
    """File access denied due to permissions."""
    pass


class CorruptedFileError(FileProcessingError):
    """File is corrupted or malformed."""
    pass


class ParseError(FileProcessingError):
    """Error parsing file metadata."""
    pass
