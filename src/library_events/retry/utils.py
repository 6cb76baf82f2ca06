"""
Utility functions for retry and dead-letter routing.

Header names match what operators and the retry consumer read:
retryCount on every republished message, errorClass/errorMessage for
diagnosis.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from core.errors import is_retryable_error

logger = logging.getLogger(__name__)

RETRY_COUNT_HEADER = "retryCount"
ERROR_CLASS_HEADER = "errorClass"
ERROR_MESSAGE_HEADER = "errorMessage"

ROUTING_HEADERS = frozenset({RETRY_COUNT_HEADER, ERROR_CLASS_HEADER, ERROR_MESSAGE_HEADER})


class FailureClassification(Enum):
    """Routing class of a processing failure."""

    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


class RoutingAction(Enum):
    """Where a failed message was published."""

    RETRY = "retry"
    DLQ = "dlq"


def classify_failure(error: Exception) -> FailureClassification:
    """
    Map an exception to its routing class.

    Permanent errors never become valid on retry. Transient and
    unclassified errors are retried, bounded by max_retries.
    """
    if is_retryable_error(error):
        return FailureClassification.RETRYABLE
    return FailureClassification.NON_RETRYABLE


def should_send_to_dlq(
    classification: FailureClassification,
    retry_count: int,
    max_retries: int,
) -> Tuple[bool, str]:
    """
    Determine if a failed message should be sent to DLQ.

    Args:
        classification: Routing class of the failure
        retry_count: Retries already performed for this message
        max_retries: Maximum allowed retries

    Returns:
        Tuple of (should_dlq, reason) where reason is "permanent",
        "exhausted", or an empty string
    """
    if classification == FailureClassification.NON_RETRYABLE:
        return True, "permanent"

    if retry_count >= max_retries:
        return True, "exhausted"

    return False, ""


def get_header(headers: Optional[Iterable[Tuple[str, bytes]]], name: str) -> Optional[str]:
    """Return the last value of a record header as text, or None."""
    value = None
    for key, raw in headers or ():
        if key == name and raw is not None:
            value = raw.decode("utf-8", errors="replace")
    return value


def get_retry_count(headers: Optional[Iterable[Tuple[str, bytes]]]) -> int:
    """
    Read the retry count carried by a record.

    Returns 0 when the header is absent or not a non-negative integer.
    """
    raw = get_header(headers, RETRY_COUNT_HEADER)
    if raw is None:
        return 0
    try:
        count = int(raw.strip())
    except ValueError:
        logger.warning(
            "Ignoring malformed retryCount header",
            extra={"headers": {RETRY_COUNT_HEADER: raw}},
        )
        return 0
    return max(count, 0)


def passthrough_headers(headers: Optional[Iterable[Tuple[str, bytes]]]) -> Dict[str, str]:
    """Original record headers minus the routing headers this module owns."""
    return {
        key: raw.decode("utf-8", errors="replace")
        for key, raw in headers or ()
        if key not in ROUTING_HEADERS and raw is not None
    }


def truncate_error_message(error: Exception, max_length: int = 500) -> str:
    """
    Truncate error message to prevent huge Kafka headers.

    Args:
        error: Exception to extract message from
        max_length: Maximum length of error message

    Returns:
        Truncated error message with ellipsis if needed
    """
    error_message = str(error)
    if len(error_message) > max_length:
        return error_message[: max_length - 3] + "..."
    return error_message


def create_retry_headers(
    retry_count: int,
    original_headers: Optional[Iterable[Tuple[str, bytes]]] = None,
) -> Dict[str, str]:
    """
    Create Kafka headers for a message republished to the retry topic.

    Args:
        retry_count: Retry count the republished message carries
        original_headers: Headers of the inbound record, carried through
    """
    headers = passthrough_headers(original_headers)
    headers[RETRY_COUNT_HEADER] = str(retry_count)
    return headers


def create_dlq_headers(
    retry_count: int,
    error: Exception,
    original_headers: Optional[Iterable[Tuple[str, bytes]]] = None,
) -> Dict[str, str]:
    """
    Create Kafka headers for a dead-lettered message.

    Args:
        retry_count: Final retry count of the message
        error: Final exception that caused the failure
        original_headers: Headers of the inbound record, carried through
    """
    headers = passthrough_headers(original_headers)
    headers[RETRY_COUNT_HEADER] = str(retry_count)
    headers[ERROR_CLASS_HEADER] = type(error).__name__
    headers[ERROR_MESSAGE_HEADER] = truncate_error_message(error)
    return headers


def log_retry_decision(
    action: str,
    retry_count: int,
    classification: FailureClassification,
    error: Exception,
    max_retries: int,
) -> None:
    """
    Log retry routing decision with consistent format.

    Args:
        action: Action being taken ("retry", "dlq_permanent", "dlq_exhausted")
        retry_count: Current retry count
        classification: Routing class of the failure
        error: Exception that caused failure
        max_retries: Configured retry limit
    """
    log_context = {
        "retry_count": retry_count,
        "max_retries": max_retries,
        "classification": classification.value,
        "error_type": type(error).__name__,
    }

    if action == "dlq_permanent":
        logger.warning(
            "Non-retryable error, sending to DLQ without retry",
            extra={**log_context, "error": str(error)[:200]},
        )
    elif action == "dlq_exhausted":
        logger.warning(
            "Retries exhausted, sending to DLQ",
            extra=log_context,
        )
    elif action == "retry":
        logger.info(
            "Sending message to retry topic",
            extra=log_context,
        )


__all__ = [
    "RETRY_COUNT_HEADER",
    "ERROR_CLASS_HEADER",
    "ERROR_MESSAGE_HEADER",
    "FailureClassification",
    "RoutingAction",
    "classify_failure",
    "should_send_to_dlq",
    "get_header",
    "get_retry_count",
    "passthrough_headers",
    "truncate_error_message",
    "create_retry_headers",
    "create_dlq_headers",
    "log_retry_decision",
]
