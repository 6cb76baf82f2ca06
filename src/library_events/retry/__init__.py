"""
Retry and dead-letter routing for failed library events.

Components:
    - RetryHandler: Publishes failed records to the retry topic or DLQ
    - utils: Routing decision, header construction and parsing
"""

from library_events.retry.handler import RetryHandler
from library_events.retry.utils import (
    ERROR_CLASS_HEADER,
    ERROR_MESSAGE_HEADER,
    RETRY_COUNT_HEADER,
    FailureClassification,
    RoutingAction,
    classify_failure,
    get_retry_count,
    should_send_to_dlq,
)

__all__ = [
    "RetryHandler",
    "FailureClassification",
    "RoutingAction",
    "classify_failure",
    "get_retry_count",
    "should_send_to_dlq",
    "RETRY_COUNT_HEADER",
    "ERROR_CLASS_HEADER",
    "ERROR_MESSAGE_HEADER",
]
