"""
Test suite for structured logging and job log context.
"""

import json
import logging
import sys

import pytest

from vehicle_report_pipeline.utils.logger import (
    JobContextFilter,
    LoggerContext,
    StructuredFormatter,
    clear_log_context,
    get_log_context,
    set_log_context
)


@pytest.fixture(autouse=True)
def empty_context():
    """Start and finish every test with no log context."""
    clear_log_context()
    yield
    clear_log_context()


def make_record(message: str = "Running job", **extra) -> logging.LogRecord:
    record = logging.LogRecord("vehicle_report_pipeline.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    """Test suite for log context helpers."""

    def test_logger_context_restores_outer_context(self):
        # Arrange
        set_log_context(inspection_id="i-1")

        # Act
        with LoggerContext(job_id="j-1", sequence_order=2):
            inner = get_log_context()
        outer = get_log_context()

        # Assert
        assert inner == {"inspection_id": "i-1", "job_id": "j-1", "sequence_order": 2}
        assert outer == {"inspection_id": "i-1"}

    def test_filter_does_not_override_explicit_extra(self):
        record = make_record(job_id="explicit")

        with LoggerContext(job_id="from-context", inspection_id="i-1"):
            assert JobContextFilter().filter(record)

        assert record.job_id == "explicit"
        assert record.inspection_id == "i-1"


class TestStructuredFormatter:
    """Test suite for JSON log lines."""

    def test_extra_fields_are_nested(self):
        # Arrange
        record = make_record(inspection_id="i-1", cost=0.25)

        # Act
        entry = json.loads(StructuredFormatter().format(record))

        # Assert
        assert entry["level"] == "INFO"
        assert entry["message"] == "Running job"
        assert entry["extra"] == {"inspection_id": "i-1", "cost": 0.25}

    def test_exception_details_are_included(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(StructuredFormatter(include_extra=False).format(record))

        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad payload"
        assert "extra" not in entry
