"""Tests for issue classification."""

import json

import pytest

from photo_migrator.common import MigratorError, ParseError
from photo_migrator.errors import (
    EnumerationError,
    IssueCategory,
    SidecarParseError,
    classify_error,
)


class TestClassifyError:
    """Tests for classify_error()."""

    @pytest.mark.parametrize("error,category", [
        (SidecarParseError("bad json"), IssueCategory.SIDECAR_PARSE),
        (json.JSONDecodeError("Expecting value", "", 0), IssueCategory.SIDECAR_PARSE),
        (EnumerationError("unreadable"), IssueCategory.UNREADABLE_DIRECTORY),
        (OSError("disk"), IssueCategory.ASSET_PROCESSING),
        (ValueError("bad value"), IssueCategory.ASSET_PROCESSING),
    ])
    def test_categories(self, error, category):
        assert classify_error(error) == category.value

    def test_hierarchy(self):
        assert issubclass(SidecarParseError, ParseError)
        assert issubclass(EnumerationError, MigratorError)

    def test_context_kept(self):
        error = EnumerationError("cannot read", path="/export")
        assert error.context == {"path": "/export"}
