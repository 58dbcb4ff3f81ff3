"""Tests for logging configuration."""

import json
import logging

import pytest
from pydantic import ValidationError

from photo_migrator.common import LogContext, setup_logging
from photo_migrator.common.logging import StructuredFormatter
from photo_migrator.common.logging_config import LoggingConfig


class TestLoggingConfig:
    """Test LoggingConfig validation."""

    def test_valid_config(self):
        """Test valid logging configuration."""
        config = LoggingConfig(level="INFO", format="json")
        assert config.level == "INFO"
        assert config.format == "json"

    def test_default_values(self):
        """Test default values."""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "simple"
        assert config.file is None

    def test_rejects_invalid_log_level(self):
        """Test that invalid log levels are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(level="TRACE")

        with pytest.raises(ValidationError):
            LoggingConfig(level="CRITICAL")

    def test_rejects_invalid_format(self):
        """Test that invalid formats are rejected."""
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")

    def test_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            LoggingConfig(colour=True)

    def test_case_insensitive_values(self):
        """Test that level and format are case-insensitive."""
        config = LoggingConfig(level="Debug", format="JSON")
        assert config.level == "DEBUG"
        assert config.format == "json"

    def test_serialization(self):
        """Test that config can be serialized."""
        config = LoggingConfig(level="DEBUG", format="detailed")
        assert config.model_dump() == {
            "level": "DEBUG",
            "format": "detailed",
            "file": None,
        }


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_console_handler_and_level(self, restore_root_logger):
        setup_logging(level="warning", format="detailed")

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1

    def test_file_handler_writes_json(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(level="INFO", log_file=log_file)

        logging.getLogger("photo_migrator.test").info("hello")
        for handler in restore_root_logger.handlers:
            handler.flush()

        record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert record["message"] == "hello"
        assert record["level"] == "INFO"


class TestLogContext:
    """Tests for LogContext."""

    def test_fields_attached_inside_context(self):
        logger = logging.getLogger("photo_migrator.test")
        with LogContext(logger, run_id="abc"):
            record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "msg", (), None)
        outside = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "msg", (), None)

        assert record.extra_fields == {"run_id": "abc"}
        assert not hasattr(outside, "extra_fields")

    def test_structured_formatter_includes_fields(self):
        logger = logging.getLogger("photo_migrator.test")
        with LogContext(logger, run_id="abc"):
            record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, "msg %s", ("x",), None)

        data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "msg x"
        assert data["run_id"] == "abc"
