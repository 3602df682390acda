"""Tests for logging setup and structured error telemetry."""

import json
import logging

import pytest

from workbench.telemetry.errors import ErrorCode, UnsupportedFileError, emit_structured_error
from workbench.telemetry.log_setup import SERVICE_NAME, HumanFormatter, build_formatter, configure_logging


def _record(**extra):
    record = logging.LogRecord("workbench.test", logging.ERROR, __file__, 1, "workbench_error", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    record.service = SERVICE_NAME
    return record


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestFormatters:
    def test_json_formatter_renames_fields(self):
        line = build_formatter("json").format(_record(error_code="EMAIL_UNPACK_FAILED"))
        payload = json.loads(line)
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "workbench.test"
        assert payload["message"] == "workbench_error"
        assert payload["service"] == SERVICE_NAME
        assert payload["error_code"] == "EMAIL_UNPACK_FAILED"

    def test_human_formatter_appends_structured_keys(self):
        line = HumanFormatter().format(_record(error_code="NEWS_FETCH_FAILED", session_id="s1", details={}))
        assert "ERROR workbench.test: workbench_error" in line
        assert "error_code=NEWS_FETCH_FAILED" in line
        assert "session_id=s1" in line
        assert "details=" not in line

    def test_human_style_selected(self):
        assert isinstance(build_formatter("human"), HumanFormatter)


def test_configure_logging_installs_single_handler(restore_root_logging):
    configure_logging("DEBUG", "json")
    configure_logging("WARNING", "human")
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    assert isinstance(root.handlers[0].formatter, HumanFormatter)
    assert logging.getLogger("uvicorn.access").propagate is True


def test_emit_structured_error_extras(caplog):
    logger = logging.getLogger("workbench.test")
    with caplog.at_level(logging.ERROR):
        emit_structured_error(
            logger,
            code=ErrorCode.NEWS_FETCH_FAILED,
            message="429",
            suppressed=True,
            session_id="session_1",
            details={"entity_name": "Acme"},
        )
    record = caplog.records[-1]
    assert record.error_code == "NEWS_FETCH_FAILED"
    assert record.error_message == "429"
    assert record.suppressed is True
    assert record.session_id == "session_1"
    assert record.phase is None
    assert record.details == {"entity_name": "Acme"}


def test_unsupported_file_error_names_file():
    error = UnsupportedFileError("archive.xyz")
    assert error.filename == "archive.xyz"
    assert "archive.xyz" in str(error)
