"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from core.logging.context import get_log_context
from core.logging.kafka_context import get_kafka_context


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Correlation
        "trace_id",
        "duration_ms",
        # Errors
        "error_category",
        "error_message",
        "error_class",
        "error_type",
        "error",
        "classification",
        # Routing
        "retry_count",
        "max_retries",
        "retry_topic",
        "dlq_topic",
        "dlq_reason",
        "outcome",
        # Identifiers
        "library_event_id",
        "library_event_type",
        "book_id",
        # Consumer/producer
        "topic",
        "topics",
        "group_id",
        "partition",
        "partitions",
        "partition_count",
        "offset",
        "message_count",
        "headers",
        "bootstrap_servers",
        # Storage
        "db_path",
    ]

    NUMERIC_FIELDS = {
        "duration_ms": float,
        "retry_count": int,
        "max_retries": int,
        "partition": int,
        "partition_count": int,
        "offset": int,
        "message_count": int,
        "library_event_id": int,
        "book_id": int,
    }

    def _ensure_type(self, field: str, value: Any) -> Any:
        if field not in self.NUMERIC_FIELDS or value is None:
            return value
        try:
            return self.NUMERIC_FIELDS[field](value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> Dict[str, Any]:
        return {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: Dict[str, Any]) -> None:
        for field, value in get_log_context().items():
            if value:
                log_entry[field] = value
        log_entry.update(get_kafka_context())

    def _inject_extra_fields(self, log_entry: Dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._ensure_type(field, value)

    def _inject_exception(self, log_entry: Dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)
        self._inject_context(log_entry)

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        color = self.COLORS.get(record.levelno, "")
        if not self._use_colors or not color:
            return level_name
        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_tags(record: logging.LogRecord) -> List[str]:
        tags = []
        kafka_ctx = get_kafka_context()
        if kafka_ctx:
            tags.append(
                f"[{kafka_ctx['kafka_topic']}:{kafka_ctx['kafka_partition']}"
                f"@{kafka_ctx['kafka_offset']}]"
            )
        event_id = getattr(record, "library_event_id", None)
        if event_id is not None:
            tags.append(f"[event:{event_id}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        log_context = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            self._format_level_name(record),
        ]
        if log_context["stage"]:
            parts.append(f"[{log_context['stage']}]")
        prefix = " - ".join(parts)

        tags = self._build_tags(record)
        message = record.getMessage()
        if tags:
            message = f"{' '.join(tags)} {message}"

        line = f"{prefix} - {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
