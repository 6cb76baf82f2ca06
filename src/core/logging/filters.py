"""Log filters for context-based routing."""

import logging

from core.logging.context import get_log_context


class StageContextFilter(logging.Filter):
    """
    Filter logs to only pass those matching a specific stage.

    Used to route logs to dispatcher-specific file handlers based on
    the current logging context's stage value.

    Usage:
        handler = RotatingFileHandler("retry.log")
        handler.addFilter(StageContextFilter("retry"))
    """

    def __init__(self, stage: str):
        super().__init__()
        self.stage = stage

    def filter(self, record: logging.LogRecord) -> bool:
        return get_log_context().get("stage") == self.stage
