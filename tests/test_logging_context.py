"""
Tests for correlation-aware logging.
"""
import json
import logging

from hotfix_sentinel.logging_context import (
    ContextFilter,
    JSONFormatter,
    LoggingContext,
    clear_context,
    get_context,
    get_logger,
    set_context,
)


def test_logging_context_sets_and_restores() -> None:
    """Test context values are scoped to the with-block."""
    clear_context()

    with LoggingContext(batch_id="b-1"):
        with LoggingContext(incident_id="inc-1"):
            assert get_context() == {"batch_id": "b-1", "incident_id": "inc-1"}
        assert get_context() == {"batch_id": "b-1"}

    assert get_context() == {}


def test_set_context_merges() -> None:
    """Test set_context adds to the existing context."""
    clear_context()
    set_context(batch_id="b-1")
    set_context(action="createBranch")

    assert get_context() == {"batch_id": "b-1", "action": "createBranch"}
    clear_context()


def test_contextual_logger_injects_fields(caplog) -> None:
    """Test correlation IDs appear on log records."""
    logger = get_logger("hotfix_sentinel.test")

    with caplog.at_level(logging.INFO, logger="hotfix_sentinel.test"):
        with LoggingContext(incident_id="inc-9", action="getFile"):
            logger.info("Fetching file")

    record = caplog.records[-1]
    assert record.incident_id == "inc-9"
    assert record.action == "getFile"


def test_json_formatter() -> None:
    """Test JSON output includes correlation fields."""
    record = logging.LogRecord("x", logging.WARNING, __file__, 10, "hello %s", ("world",), None)
    record.incident_id = "inc-1"

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "hello world"
    assert data["level"] == "WARNING"
    assert data["incident_id"] == "inc-1"
    assert "batch_id" not in data


def test_context_filter_stamps_plain_loggers() -> None:
    """Test the handler filter adds correlation fields to records from getLogger loggers."""
    record = logging.LogRecord("hotfix_sentinel.workflow", logging.INFO, __file__, 1, "Classified", (), None)

    with LoggingContext(batch_id="b-2", incident_id="inc-3"):
        ContextFilter().filter(record)

    assert record.incident_id == "inc-3"
    assert record.correlation == " [batch_id=b-2 incident_id=inc-3]"
    assert not hasattr(record, "action")


def test_context_filter_without_context() -> None:
    clear_context()
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "idle", (), None)

    ContextFilter().filter(record)

    assert record.correlation == ""
