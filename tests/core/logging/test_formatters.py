"""Tests for log formatters and Kafka log context."""

import json
import logging
import sys

import pytest

from core.errors import TransientStoreError
from core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    KafkaLogContext,
    clear_kafka_context,
    clear_log_context,
    get_kafka_context,
    log_exception,
    set_log_context,
)


@pytest.fixture(autouse=True)
def cleanup():
    clear_log_context()
    clear_kafka_context()
    yield
    clear_log_context()
    clear_kafka_context()


def _record(msg: str = "hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="library_events.test",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter output."""

    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "library_events.test"
        assert entry["message"] == "hello"
        assert entry["ts"].endswith("Z")

    def test_known_extras_included_and_typed(self):
        record = _record(retry_count="2", library_event_id=7, unknown_field="x")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["retry_count"] == 2
        assert entry["library_event_id"] == 7
        assert "unknown_field" not in entry

    def test_injects_log_and_kafka_context(self):
        set_log_context(stage="ingest", worker_id="w1")
        with KafkaLogContext(topic="library-events", partition=1, offset=99):
            entry = json.loads(JSONFormatter().format(_record()))

        assert entry["stage"] == "ingest"
        assert entry["worker_id"] == "w1"
        assert entry["kafka_topic"] == "library-events"
        assert entry["kafka_partition"] == 1
        assert entry["kafka_offset"] == 99

    def test_exception_serialized(self):
        try:
            raise ValueError("broken")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "broken"


class TestConsoleFormatter:
    """Tests for ConsoleFormatter output."""

    def test_includes_stage_and_kafka_tag(self):
        set_log_context(stage="retry")
        with KafkaLogContext(topic="library-events.RETRY", partition=0, offset=5):
            line = ConsoleFormatter().format(_record("processing"))

        assert "[retry]" in line
        assert "[library-events.RETRY:0@5]" in line
        assert line.endswith("processing")


class TestKafkaLogContext:
    """Tests for Kafka context propagation."""

    def test_empty_outside_message(self):
        assert get_kafka_context() == {}

    def test_restores_previous_context(self):
        with KafkaLogContext(topic="outer", partition=0, offset=1):
            with KafkaLogContext(topic="inner", partition=2, offset=3, key="42"):
                assert get_kafka_context()["kafka_key"] == "42"
            context = get_kafka_context()
            assert context["kafka_topic"] == "outer"
            assert "kafka_key" not in context
        assert get_kafka_context() == {}


class TestLogException:
    """Tests for log_exception helper."""

    def test_adds_error_category(self, caplog):
        logger = logging.getLogger("library_events.test.log_exception")
        with caplog.at_level(logging.WARNING, logger=logger.name):
            log_exception(
                logger,
                TransientStoreError("database is locked"),
                "Store write failed",
                level=logging.WARNING,
                include_traceback=False,
            )

        record = caplog.records[-1]
        assert record.error_category == "transient"
        assert record.error_type == "TransientStoreError"
        assert record.error_message == "database is locked"
