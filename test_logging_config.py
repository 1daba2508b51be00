"""
Tests for structured logging
"""

import json
import logging
import sys

from lineflux.logging_config import (
    StructuredFormatter,
    log_query_execution,
    log_write_operation,
    with_logging_context,
)


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def capture(name):
    logger = logging.getLogger(name)
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, handler


def test_structured_formatter_output():
    formatter = StructuredFormatter(service_name="test-service")
    record = logging.LogRecord("lineflux.writer", logging.WARNING, __file__, 10, "batch %s dropped", ("b1",), None)
    record.database = "metrics"

    entry = json.loads(formatter.format(record))
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "lineflux.writer"
    assert entry["message"] == "batch b1 dropped"
    assert entry["service"] == "test-service"
    assert entry["timestamp"].endswith("Z")
    assert entry["extra"] == {"database": "metrics"}
    assert "thread" not in entry


def test_structured_formatter_trace_and_exception():
    formatter = StructuredFormatter(include_trace=True)
    try:
        raise ValueError("bad value")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info(), func="send")

    entry = json.loads(formatter.format(record))
    assert entry["function"] == "send"
    assert entry["exception"]["type"] == "ValueError"
    assert entry["exception"]["message"] == "bad value"
    assert "Traceback" in entry["exception"]["traceback"]


def test_log_write_operation():
    logger, handler = capture("test.write")
    log_write_operation(logger, "metrics", 3, 120, 1.5, False, error="boom")

    record = handler.records[0]
    assert record.getMessage() == "Write to 'metrics' failed"
    assert record.event_type == "write_operation"
    assert record.line_count == 3
    assert record.byte_count == 120
    assert record.success is False
    assert record.error == "boom"


def test_log_query_execution_truncates():
    logger, handler = capture("test.query")
    log_query_execution(logger, "SELECT " + "x" * 300, "metrics")

    record = handler.records[0]
    assert record.event_type == "query_execution"
    assert record.query_snippet.endswith("...")
    assert len(record.query_snippet) == 203


def test_logging_context():
    logger, handler = capture("test.context")
    with with_logging_context(request_id="r-1"):
        logger.info("inside")
    logger.info("outside")

    assert handler.records[0].request_id == "r-1"
    assert not hasattr(handler.records[1], "request_id")
