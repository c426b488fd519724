"""Tests for CLI error output."""

import json
import sys
from io import StringIO
from unittest.mock import patch

import pytest

from foliotrack.cli.error_handler import cli_errors, handle_error
from foliotrack.foundation.errors import ErrorCode, FolioError


class TestHandleErrorJson:
    """Tests for handle_error with JSON output mode."""

    def test_outputs_json_to_stderr(self) -> None:
        """JSON output goes to stderr."""
        error = FolioError(code=ErrorCode.CONFIG_PATH_MISSING, context={"path": "/nope"})

        captured_stderr = StringIO()
        with (
            patch.object(sys, "stderr", captured_stderr),
            pytest.raises(SystemExit) as exc_info,
        ):
            handle_error(error, json_output=True)

        assert exc_info.value.code == 1
        data = json.loads(captured_stderr.getvalue())
        assert data["error_id"] == "FT-5002"
        assert data["context"] == {"path": "/nope"}

    def test_includes_cause(self) -> None:
        """The cause is included when present."""
        error = FolioError(
            code=ErrorCode.STORE_UNAVAILABLE,
            context={"path": "p.db", "detail": "locked"},
            cause=OSError("database is locked"),
        )

        captured_stderr = StringIO()
        with patch.object(sys, "stderr", captured_stderr), pytest.raises(SystemExit):
            handle_error(error, json_output=True)

        assert json.loads(captured_stderr.getvalue())["cause"] == "database is locked"


class TestHandleErrorHuman:
    """Tests for human-readable error output."""

    def test_prints_id_message_and_hints(self) -> None:
        """Human output shows the error id, message and recovery hints."""
        error = FolioError(
            code=ErrorCode.STORE_DECODE_FAILED,
            context={"record": "projects/app", "detail": "bad status"},
        )

        captured_stderr = StringIO()
        with (
            patch.object(sys, "stderr", captured_stderr),
            pytest.raises(SystemExit) as exc_info,
        ):
            handle_error(error)

        assert exc_info.value.code == 1
        output = captured_stderr.getvalue()
        assert "FT-7003" in output
        assert "projects/app" in output
        assert "What you can do" in output


class TestCliErrors:
    """Tests for the cli_errors context manager."""

    def test_folio_error_exits(self) -> None:
        """FolioError inside the block becomes exit code 1."""
        with patch.object(sys, "stderr", StringIO()), pytest.raises(SystemExit) as exc_info:
            with cli_errors():
                raise FolioError(code=ErrorCode.BACKUP_FAILED, context={"path": "x", "detail": "y"})

        assert exc_info.value.code == 1

    def test_other_errors_propagate(self) -> None:
        """Only FolioError is handled."""
        with pytest.raises(KeyError):
            with cli_errors():
                raise KeyError("boom")
